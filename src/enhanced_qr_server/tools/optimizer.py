from enhanced_qr_server.schemas import OptimizationResult

LONG_URL_LENGTH = 100


def optimize_content(content: str) -> OptimizationResult:
    """Apply lossless size and safety tweaks to QR content."""
    optimized = content
    applied = []

    trimmed = optimized.strip()
    if trimmed != optimized:
        optimized = trimmed
        applied.append("Removed leading/trailing whitespace")

    if optimized.startswith("http://"):
        optimized = "https://" + optimized.removeprefix("http://")
        applied.append("Upgraded HTTP to HTTPS")

    if optimized.startswith("https://") and len(optimized) > LONG_URL_LENGTH:
        applied.append("Consider using a URL shortener for long URLs")

    return OptimizationResult(
        original=content,
        optimized=optimized,
        original_length=len(content),
        optimized_length=len(optimized),
        reduction=len(content) - len(optimized),
        applied=applied,
    )
