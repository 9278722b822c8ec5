"""Validation of identity document images submitted as base64 data URLs."""

import base64
import binascii
import io
import logging
import re
from typing import Any, List, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from ..config import get_settings
from ..errors import ValidationError

logger = logging.getLogger(__name__)

DATA_URL_PATTERN = re.compile(r"^data:image/(jpeg|jpg);base64,(.+)$", re.IGNORECASE | re.DOTALL)
BASE64_PATTERN = re.compile(r"^[A-Za-z0-9+/=]+$")


class DocumentValidator:
    """Checks uploaded documents before they are forwarded to the identity provider."""

    def __init__(self, max_size_mb: Optional[float] = None):
        if max_size_mb is None:
            max_size_mb = get_settings().max_document_size_mb
        self.max_size_mb = max_size_mb

    def validate_document(self, document: Any, position: int) -> Tuple[bool, str]:
        """
        Validate one document.

        Args:
            document: Value received from the client
            position: 1-based position, used in error messages

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not isinstance(document, str):
            return False, f"Document {position} must be a base64-encoded string"

        match = DATA_URL_PATTERN.match(document.strip())
        if not match:
            return False, (
                f"Document {position} must be a base64-encoded image with format: "
                "data:image/jpeg;base64,..."
            )

        payload = match.group(2)
        if not BASE64_PATTERN.match(payload):
            return False, f"Document {position} must be a base64-encoded image with format: data:image/jpeg;base64,..."

        size_mb = (len(payload) * 3 / 4) / (1024 * 1024)
        if size_mb > self.max_size_mb:
            return False, f"Document {position} exceeds the maximum size of {self.max_size_mb}MB"

        try:
            raw = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError):
            return False, f"Document {position} is not valid base64 data"

        try:
            with Image.open(io.BytesIO(raw)) as img:
                image_format = img.format
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            return False, f"Unable to read document {position}: {str(e)}"

        if image_format != "JPEG":
            return False, f"Document {position} must be a JPEG image, got {image_format}"

        return True, ""

    def validate(self, documents: Any) -> List[str]:
        """
        Validate the full upload and return the bare base64 payloads.

        Raises:
            ValidationError: On the first invalid document
        """
        if not isinstance(documents, list):
            raise ValidationError(
                "documents must be an array of base64-encoded images", field="documents"
            )
        if len(documents) < 1:
            raise ValidationError("Provide at least 1 document for verification", field="documents")

        payloads = []
        for position, document in enumerate(documents, start=1):
            is_valid, error_msg = self.validate_document(document, position)
            if not is_valid:
                logger.info(f"Rejected document {position}: {error_msg}")
                raise ValidationError(error_msg, field="documents")
            payloads.append(DATA_URL_PATTERN.match(document.strip()).group(2))

        return payloads
