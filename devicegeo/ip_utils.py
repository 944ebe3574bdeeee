from collections.abc import Mapping

AUTO_CACHE_KEY = "auto"

_LOOPBACK_LITERALS = frozenset({"::1", "127.0.0.1"})
_PRIVATE_PREFIXES = ("10.", "192.168.")
_IPV4_MAPPED_PREFIX = "::ffff:"


def normalize_cache_key(raw_ip: str | None) -> str:
    """Cache key for a resolve call: the IP itself, or ``"auto"`` when none is known."""
    ip = (raw_ip or "").strip()
    return ip or AUTO_CACHE_KEY


def _is_private_172(ip: str) -> bool:
    # 172.16.0.0/12 covers second octets 16..31.
    parts = ip.split(".")
    if len(parts) < 2 or parts[0] != "172":
        return False
    try:
        second = int(parts[1])
    except ValueError:
        return False
    return 16 <= second <= 31


def is_auto_detect_ip(ip: str | None) -> bool:
    """Whether ``ip`` cannot be resolved on its own by a public provider.

    Empty, loopback and RFC 1918 private addresses are looked up in auto-detect
    mode, where the provider infers the caller's public address instead.
    Prefix matching is used rather than CIDR math.
    """
    ip = (ip or "").strip()
    if not ip:
        return True
    if ip in _LOOPBACK_LITERALS:
        return True
    if ip.startswith(_PRIVATE_PREFIXES):
        return True
    return _is_private_172(ip)


def _strip_ipv4_mapped(ip: str) -> str:
    ip = ip.strip()
    if ip.lower().startswith(_IPV4_MAPPED_PREFIX):
        return ip[len(_IPV4_MAPPED_PREFIX) :]
    return ip


def get_client_ip(headers: Mapping[str, str], peer_host: str | None = None) -> str:
    """Best-effort detection of the requesting client's IP.

    Proxy headers win over the socket peer because the service is usually
    deployed behind a load balancer. Returns ``""`` when nothing is known, which
    the resolver treats as auto-detect.
    """
    forwarded = headers.get("x-forwarded-for") or headers.get("x-real-ip")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return _strip_ipv4_mapped(first)

    for source in (peer_host, headers.get("cf-connecting-ip")):
        if source and source.strip():
            return _strip_ipv4_mapped(source)

    return ""
