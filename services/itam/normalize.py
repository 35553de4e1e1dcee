import ipaddress


def norm_str(value):
    if value is None:
        return ""
    return str(value).strip()


def norm_lower(value):
    return norm_str(value).lower()


def none_if_blank(value):
    s = norm_str(value)
    return s or None


def norm_ip(value):
    s = norm_str(value)
    if not s:
        return ""

    if ":" in s and s.count(".") >= 1:
        # host:port shape
        s = s.split(":", 1)[0]

    try:
        return str(ipaddress.ip_address(s))
    except ValueError:
        return ""
