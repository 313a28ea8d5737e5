"""
Console Test Harness for the DV-100 DialogueManager

Drives the conversation from the terminal against the in-process
services (or remote collaborators with DV100_COLLABORATORS=http).
Answers are only captured with a model loaded (DV100_LOAD_MODEL=1) or
remote collaborators; without one every answer reads as unsure.

Commands:
    :progress   show progress
    :preview    show captured answers
    :export     validate and fill the PDF
    :reset      start over
    quit/exit   leave (the session is kept on disk)
"""

import copy
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

from app import build_dialogue_manager, load_model_client
from dv100 import config
from dv100.core.derived_fields import apply_derived_fields, merge_derived
from dv100.core.form_exporter import FormExporter
from dv100.core.pdf_filler import PdfFormFiller
from dv100.results import ExportBlocked, IllegalCommand
from dv100.services import ExtractionService, LocalJuraClient, QuestionService
from dv100.utils.display_helpers import build_groups
from dv100.utils.jura_client import JuraApiClient

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def print_separator(char="=", length=60):
    print(char * length)


def print_debug_info(turn_result):
    """Print extraction/binding details from a TurnResult"""
    debug = turn_result.debug
    print("-" * 60)
    if 'extraction' in debug:
        print(f"Extraction: {debug['extraction']}")
    if 'schema_path' in debug:
        print(f"Stored at: {debug['schema_path']} = '{debug.get('answer', '')}'")
    if 'retry_attempt' in debug:
        print(f"Retry attempt: {debug['retry_attempt']}")
    print(f"Status: {turn_result.turn_metadata['status']}")
    print("-" * 60)


def print_preview(dm):
    derived = apply_derived_fields(copy.deepcopy(dm.form_data), dm.derived_map)['derived']
    for group in build_groups(merge_derived(dm.form_data, derived)):
        print(f"\n{group['title']}")
        for entry in group['entries']:
            print(f"  {entry['label']}: {entry['value']}")


def main():
    """Run console session"""
    print_separator()
    print("DV-100 INTAKE ASSISTANT - CONSOLE")
    print_separator()

    try:
        if config.COLLABORATOR_MODE == "http":
            api_client = JuraApiClient(config.API_BASE_URL)
        else:
            model_client = load_model_client()
            api_client = LocalJuraClient(QuestionService(model_client), ExtractionService(model_client))

        dm = build_dialogue_manager(api_client)
        exporter = FormExporter(
            PdfFormFiller(config.PDF_TEMPLATE_PATH, config.PDF_FIELD_MAPPING_PATH),
            dm.derived_map,
            config.OUTPUT_DIR
        )
    except (OSError, ValueError, RuntimeError) as e:
        print(f"\nFailed to initialize: {e}")
        return 1

    for message in dm.messages:
        speaker = "Jura" if message.role == "jura" else "You"
        print(f"\n{speaker}: {message.text}")

    debug_mode = "--debug" in sys.argv

    while True:
        try:
            user_input = input("\nYou: ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nSession saved. Goodbye.")
            return 0

        if user_input.lower() in ['quit', 'exit', 'stop']:
            print("Session saved. Goodbye.")
            return 0

        if user_input == ":progress":
            progress = dm.progress()
            print(f"{progress.completed}/{progress.total} steps ({dm.status})")
            continue

        if user_input == ":preview":
            print_preview(dm)
            continue

        if user_input == ":reset":
            dm.reset()
            print(f"\nJura: {dm.messages[0].text}")
            continue

        if user_input == ":export":
            try:
                result = exporter.export(dm.form_data)
            except FileNotFoundError as e:
                print(f"Export failed: {e}")
                continue

            if isinstance(result, ExportBlocked):
                print("Cannot export yet:")
                for line in result.messages:
                    print(f"  - {line}")
            else:
                print(f"PDF saved: {result.pdf_path} ({result.fields_filled} fields)")
            continue

        result = dm.handle_message(user_input)
        if isinstance(result, IllegalCommand):
            print(f"({result.reason})")
            continue

        if debug_mode:
            print_debug_info(result)

        if result.system_output:
            print(f"\nJura: {result.system_output}")

        if result.flow_complete:
            print("\nAll questions answered. Type :preview to review or :export to create the PDF.")


if __name__ == "__main__":
    sys.exit(main())
