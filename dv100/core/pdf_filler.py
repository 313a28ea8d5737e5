"""
PDF Filler - write form data into the DV-100 AcroForm template

Responsibilities:
- Parse the field mapping file (one PDF field name per line)
- Resolve each field's value (derived overlay first, then form data)
- Set checkbox widgets on/off and text widgets to a coerced string
- Log and skip widgets that are missing or refuse a value

Widget names in the template are the schema paths themselves
(e.g. 'protectedPerson.petitionerName'), so the mapping file doubles
as the list of paths to export.
"""

import logging
import math
import re
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

import fitz  # PyMuPDF

from dv100.core.object_path import get_at_path
from dv100.core.one_of import normalize_boolean

logger = logging.getLogger(__name__)

FIELD_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.#]+$")

CHECKBOX_ON = "Yes"
CHECKBOX_OFF = "Off"


def parse_field_mapping(text: str) -> List[str]:
    """
    Field names from mapping file text.

    Lines are trimmed; anything that isn't a bare field name (headers,
    comments, blank lines) is dropped.
    """
    return [
        line.strip()
        for line in text.splitlines()
        if FIELD_NAME_PATTERN.match(line.strip())
    ]


def coerce_field_value(value: Any) -> str:
    """
    Text widget value.

    None and NaN become '', booleans become 'Yes'/'No', anything else str().
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value)


class PdfFormFiller:
    """Fills the DV-100 template through PyMuPDF widgets"""

    def __init__(
        self,
        template_path: Union[str, Path],
        mapping_path: Union[str, Path]
    ):
        """
        Args:
            template_path: Fillable DV-100 PDF
            mapping_path: Field mapping text file
        """
        self.template_path = Path(template_path)
        self.mapping_path = Path(mapping_path)

    def template_available(self) -> bool:
        return self.template_path.exists()

    def load_mapping(self) -> List[str]:
        """
        Raises:
            FileNotFoundError: If the mapping file is missing
        """
        if not self.mapping_path.exists():
            raise FileNotFoundError(f"PDF field mapping not found: {self.mapping_path}")

        with open(self.mapping_path, "r", encoding="utf-8") as f:
            mapping = parse_field_mapping(f.read())

        logger.debug(f"Loaded {len(mapping)} PDF field names")
        return mapping

    def fill(
        self,
        document: Dict[str, Any],
        derived: Dict[str, Any],
        output_path: Union[str, Path]
    ) -> Tuple[int, List[str]]:
        """
        Write a filled copy of the template.

        Args:
            document: Form data document
            derived: Derived overlay (wins over document values)
            output_path: Where to save the filled PDF

        Returns:
            (fields_filled, fields_skipped)

        Raises:
            FileNotFoundError: If the template or mapping is missing
        """
        mapping = self.load_mapping()

        if not self.template_available():
            raise FileNotFoundError(f"PDF template not found: {self.template_path}")

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        doc = fitz.open(str(self.template_path))
        try:
            widgets = {}
            for page in doc:
                for widget in page.widgets() or []:
                    widgets.setdefault(widget.field_name, widget)

            filled = 0
            skipped: List[str] = []

            for field_name in mapping:
                widget = widgets.get(field_name)
                if widget is None:
                    logger.debug(f"No widget named '{field_name}' in template")
                    skipped.append(field_name)
                    continue

                derived_value = get_at_path(derived, field_name)
                value = derived_value if derived_value is not None else get_at_path(document, field_name)

                try:
                    if widget.field_type == fitz.PDF_WIDGET_TYPE_CHECKBOX:
                        widget.field_value = CHECKBOX_ON if normalize_boolean(value) else CHECKBOX_OFF
                    else:
                        widget.field_value = coerce_field_value(value)
                    widget.update()
                    filled += 1
                except (RuntimeError, ValueError) as e:
                    logger.warning(f"Unable to set PDF field '{field_name}': {e}")
                    skipped.append(field_name)

            doc.save(str(output_path), deflate=True)
        finally:
            doc.close()

        logger.info(f"PDF written: {output_path} ({filled} filled, {len(skipped)} skipped)")
        return filled, skipped
