import logging
import os
import uuid

logger = logging.getLogger(__name__)

FILE_PREFIX = "qr"


def generate_filename(file_extension: str) -> str:
    """Return a unique artifact name such as ``qr-<uuid>.png``."""
    return f"{FILE_PREFIX}-{uuid.uuid4()}.{file_extension.strip('.')}"


def resolve_output_path(output_dir: str, file_extension: str, filename: str | None = None) -> str:
    """
    Return a resolved file path for saving output.

    - Without a filename, a unique ``qr-<uuid>.<ext>`` name is generated.
    - A caller supplied filename keeps its stem; its extension is always
      replaced by file_extension so the name matches the written format.
    The function will attempt to create the target directory.
    file_extension should not include a leading dot.
    """

    file_extension = file_extension.strip(".")
    base = os.path.expanduser(output_dir or ".")

    try:
        os.makedirs(base, exist_ok=True)
    except OSError as e:
        logger.error("Error creating output folder '%s': %s", base, e)
        # the artifact write will surface the error

    if not filename:
        return os.path.join(base, generate_filename(file_extension))

    # never let a caller supplied name escape the output directory
    stem, _ = os.path.splitext(os.path.basename(filename))
    stem = stem.rstrip(".")
    if not stem:
        return os.path.join(base, generate_filename(file_extension))
    return os.path.join(base, f"{stem}.{file_extension}")


def write_artifact(path: str, data: bytes | str) -> int:
    """Write an artifact to disk and return the number of bytes written."""
    payload = data.encode("utf-8") if isinstance(data, str) else data
    with open(path, "wb") as f:
        f.write(payload)
    logger.info("Wrote %d bytes to %s", len(payload), path)
    return len(payload)


def convert_to_bytes(size_str: str) -> int:
    """Convert a human-readable size string (e.g., '10MB', '500KB') to bytes."""

    unit_factors = {
        'B': 1,
        'KB': 1024,
        'MB': 1024 ** 2,
        'GB': 1024 ** 3,
    }

    size_str = size_str.strip().upper()
    numbers = [n for n in size_str if n.isdigit() or n == '.']
    units = ''.join([u for u in size_str if not (u.isdigit() or u == '.' or u.isspace())])
    if not numbers:
        raise ValueError(f"No numeric value found in size string: '{size_str}'")
    size_value = float(''.join(numbers))
    unit_factor = unit_factors.get(units, 1)

    return int(size_value * unit_factor)
