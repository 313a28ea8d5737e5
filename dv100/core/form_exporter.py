"""
Form Exporter - validation-gated PDF export

Sequence:
    validate_all(document)
        not ok -> ExportBlocked (PDF filler never called)
        ok     -> derived overlay -> PdfFormFiller.fill -> ExportReport

The document passed in is not mutated; derivation runs on a copy.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from dv100 import config
from dv100.core.derived_fields import DerivedMap, apply_derived_fields
from dv100.core.validation import find_issue_path, validate_all, validation_messages
from dv100.results import ExportBlocked, ExportReport
from dv100.utils.helpers import generate_form_filename

logger = logging.getLogger(__name__)


class FormExporter:
    """Validates form data and produces the filled DV-100"""

    def __init__(
        self,
        pdf_filler,
        derived_map: DerivedMap,
        output_dir: Union[str, Path] = config.OUTPUT_DIR
    ):
        """
        Args:
            pdf_filler: Object with callable fill(document, derived, output_path)
            derived_map: target path -> source path
            output_dir: Default directory for exported PDFs

        Raises:
            TypeError: If pdf_filler lacks fill()
        """
        if not callable(getattr(pdf_filler, "fill", None)):
            raise TypeError("pdf_filler must have callable fill() method")

        self.pdf_filler = pdf_filler
        self.derived_map = dict(derived_map)
        self.output_dir = Path(output_dir)

    def export(
        self,
        document: Dict[str, Any],
        output_path: Optional[Union[str, Path]] = None
    ) -> Union[ExportReport, ExportBlocked]:
        """
        Validate, derive and fill.

        Args:
            document: Form data document
            output_path: Target file (default: timestamped file in output_dir)

        Returns:
            ExportReport on success, ExportBlocked when validation fails

        Raises:
            FileNotFoundError: If the PDF template or mapping is missing
        """
        validation = validate_all(document)
        if not validation["ok"]:
            messages = validation_messages(validation)
            logger.info(f"Export blocked: {messages}")
            return ExportBlocked(
                validation=validation,
                messages=messages,
                issue_path=find_issue_path(validation),
            )

        working = copy.deepcopy(document)
        derived = apply_derived_fields(working, self.derived_map)["derived"]

        if output_path is None:
            output_path = self.output_dir / generate_form_filename()
        output_path = Path(output_path)

        filled, skipped = self.pdf_filler.fill(working, derived, output_path)

        return ExportReport(
            pdf_path=str(output_path.resolve()),
            pdf_filename=output_path.name,
            fields_filled=filled,
            fields_skipped=list(skipped),
        )
