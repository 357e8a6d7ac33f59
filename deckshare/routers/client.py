from fastapi import Request


def client_address(request: Request) -> str:
    """Client IP, preferring proxy headers."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # first entry is the original client
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host

    return "unknown"
