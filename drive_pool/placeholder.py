"""
Placeholder annotations.

A placeholder is an index-tree entry whose description holds a small JSON
record naming the real object and the storage account that owns it::

    {"name": "video.mp4", "id": "1AbC...", "mimeType": "video/mp4",
     "ownerAccountName": "sa-03"}

An empty description means the bytes live in the index account itself.
"""
import json
from typing import Optional, Union

from .exceptions import MalformedPlaceholderError
from .models import DriveFile, RealObject


def encode(real: Union[RealObject, DriveFile], owner_name: str) -> str:
    """Serialize a real object and its owner into an annotation string."""
    return json.dumps(
        {
            "name": real.name,
            "id": real.id,
            "mimeType": real.mime_type,
            "ownerAccountName": owner_name,
        },
        separators=(",", ":"),
    )


def decode(annotation: Optional[str]) -> Optional[RealObject]:
    """
    Parse an annotation string.

    Returns:
        The real object, or None for an empty annotation (no indirection)

    Raises:
        MalformedPlaceholderError: Non-empty but not a placeholder record
    """
    if not annotation:
        return None

    try:
        data = json.loads(annotation)
    except ValueError:
        raise MalformedPlaceholderError(annotation, "not JSON") from None

    if not isinstance(data, dict):
        raise MalformedPlaceholderError(annotation, "not an object")

    # Older annotations kept the owner in the embedded description field
    owner = data.get("ownerAccountName") or data.get("description")
    file_id = data.get("id")
    if not isinstance(file_id, str) or not file_id:
        raise MalformedPlaceholderError(annotation, "missing id")
    if not isinstance(owner, str) or not owner:
        raise MalformedPlaceholderError(annotation, "missing owner")

    return RealObject(
        id=file_id,
        owner=owner,
        name=str(data.get("name") or ""),
        mime_type=str(data.get("mimeType") or ""),
    )
