"""
Flask Web Application for the DV-100 intake assistant

Serves the chat conversation, progress, preview, validation and PDF
export, plus the two Jura collaborator endpoints.

Run:
    python app.py                    # static fallbacks, no model
    DV100_LOAD_MODEL=1 python app.py # local HuggingFace model
"""

import copy
import logging
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, Response, jsonify, request, send_file

load_dotenv()

from dv100 import config
from dv100.core.answer_extractor import AnswerExtractor
from dv100.core.derived_fields import apply_derived_fields, load_derived_map, merge_derived
from dv100.core.dialogue_manager import DialogueManager
from dv100.core.flow import load_flow
from dv100.core.form_exporter import FormExporter
from dv100.core.pdf_filler import PdfFormFiller
from dv100.core.question_generator import QuestionGenerator
from dv100.core.schema_paths import SchemaPathResolver, load_schema_template
from dv100.core.validation import find_issue_path, validate_all, validation_messages
from dv100.persistence import IntakePersistence, JsonFileStorage
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


def load_model_client():
    """Load the HuggingFace model (slow, only when DV100_LOAD_MODEL=1)"""
    if not config.LOAD_MODEL:
        logger.info("No model configured, collaborators will use fallbacks")
        return None

    # torch/transformers are only needed when a model is actually loaded
    from dv100.utils.hf_client import HuggingFaceClient

    logger.info("Initializing HuggingFace model (this takes ~30 seconds)...")
    return HuggingFaceClient(
        model_name=config.HF_MODEL_NAME,
        load_in_4bit=config.HF_LOAD_IN_4BIT
    )


def build_dialogue_manager(api_client, storage=None):
    """Wire the sequencer from the static data files"""
    schema = load_schema_template(config.SCHEMA_PATH)
    resolver = SchemaPathResolver.from_files(config.SCHEMA_PATH, config.SCHEMA_OVERRIDES_PATH)

    return DialogueManager(
        steps=load_flow(config.FLOW_PATH),
        derived_map=load_derived_map(config.DERIVED_FIELDS_PATH),
        path_resolver=resolver,
        question_generator=QuestionGenerator(api_client),
        answer_extractor=AnswerExtractor(api_client),
        persistence=IntakePersistence(storage or JsonFileStorage(config.STATE_DIR), schema),
    )


def create_app(
    dialogue_manager=None,
    exporter=None,
    question_service=None,
    extraction_service=None
):
    """
    Application factory

    Every collaborator can be injected (tests pass fakes); anything left
    out is built from config.
    """
    app = Flask(__name__)

    if question_service is None or extraction_service is None:
        model_client = load_model_client()
        question_service = question_service or QuestionService(model_client)
        extraction_service = extraction_service or ExtractionService(model_client)

    if dialogue_manager is None:
        if config.COLLABORATOR_MODE == "http":
            api_client = JuraApiClient(config.API_BASE_URL)
        else:
            api_client = LocalJuraClient(question_service, extraction_service)
        dialogue_manager = build_dialogue_manager(api_client)

    if exporter is None:
        exporter = FormExporter(
            PdfFormFiller(config.PDF_TEMPLATE_PATH, config.PDF_FIELD_MAPPING_PATH),
            load_derived_map(config.DERIVED_FIELDS_PATH),
            config.OUTPUT_DIR
        )

    pdf_filler = getattr(exporter, 'pdf_filler', None)
    template_check = getattr(pdf_filler, 'template_available', None)
    if template_check is not None and not template_check():
        logger.warning(
            f"PDF template not found at {pdf_filler.template_path}; "
            f"export will fail until DV100_PDF_TEMPLATE points at a fillable DV-100"
        )

    def pdf_template_available():
        return bool(template_check()) if template_check is not None else None

    def session_view():
        progress = dialogue_manager.progress()
        step = dialogue_manager.current_step
        return {
            'status': dialogue_manager.status,
            'step': step.id if step else None,
            'progress': {'completed': progress.completed, 'total': progress.total},
        }

    # ========================
    # Collaborator endpoints
    # ========================

    @app.route('/api/jura-question', methods=['POST'])
    def jura_question():
        """Plain-text question for one step"""
        payload = request.get_json(silent=True) or {}
        question = question_service.generate(payload)
        return Response(question, mimetype='text/plain')

    @app.route('/api/jura-extract-answer', methods=['POST'])
    def jura_extract_answer():
        """Clean field value: {answer, unsure[, error]}"""
        payload = request.get_json(silent=True) or {}
        return jsonify(extraction_service.extract(payload))

    # ========================
    # Conversation
    # ========================

    @app.route('/api/state', methods=['GET'])
    def get_state():
        """Message log and session status (for page reload)"""
        try:
            view = session_view()
            view['success'] = True
            view['messages'] = [message.to_dict() for message in dialogue_manager.messages]
            return jsonify(view)
        except Exception as e:
            logger.error(f"Error reading state: {e}")
            return jsonify({'success': False, 'error': str(e)}), 500

    @app.route('/api/chat', methods=['POST'])
    def chat():
        """Submit one user message and get Jura's reply"""
        try:
            data = request.get_json(silent=True) or {}
            result = dialogue_manager.handle_message(data.get('message', ''))

            if isinstance(result, IllegalCommand):
                return jsonify({
                    'success': False,
                    'error': result.reason
                }), 400

            view = session_view()
            view.update({
                'success': True,
                'reply': result.system_output,
                'flow_complete': result.flow_complete,
            })
            return jsonify(view)

        except Exception as e:
            logger.error(f"Error processing message: {e}")
            return jsonify({
                'success': False,
                'error': str(e)
            }), 500

    @app.route('/api/progress', methods=['GET'])
    def get_progress():
        view = session_view()
        view['success'] = True
        return jsonify(view)

    @app.route('/api/reset', methods=['POST'])
    def reset():
        """Discard the session and start over"""
        try:
            dialogue_manager.reset()
            return jsonify({'success': True, 'status': dialogue_manager.status})
        except Exception as e:
            logger.error(f"Error resetting session: {e}")
            return jsonify({'success': False, 'error': str(e)}), 500

    # ========================
    # Preview, validation, export
    # ========================

    @app.route('/api/preview', methods=['GET'])
    def preview():
        """Read-only summary of everything captured so far"""
        try:
            document = dialogue_manager.form_data
            derived = apply_derived_fields(copy.deepcopy(document), dialogue_manager.derived_map)['derived']
            merged = merge_derived(document, derived)
            validation = validate_all(merged)

            return jsonify({
                'success': True,
                'groups': build_groups(merged),
                'valid': validation['ok'],
                'messages': validation_messages(validation),
            })
        except Exception as e:
            logger.error(f"Error building preview: {e}")
            return jsonify({'success': False, 'error': str(e)}), 500

    @app.route('/api/validate', methods=['GET'])
    def validate():
        try:
            validation = validate_all(dialogue_manager.form_data)
            return jsonify({
                'success': True,
                'ok': validation['ok'],
                'missing': validation['required']['missing'],
                'messages': validation_messages(validation),
                'issue_path': find_issue_path(validation),
            })
        except Exception as e:
            logger.error(f"Error validating form: {e}")
            return jsonify({'success': False, 'error': str(e)}), 500

    @app.route('/api/export', methods=['POST'])
    def export_form():
        """Validate and fill the DV-100 PDF"""
        try:
            result = exporter.export(dialogue_manager.form_data)

            if isinstance(result, ExportBlocked):
                return jsonify({
                    'success': False,
                    'blocked': True,
                    'messages': result.messages,
                    'issue_path': result.issue_path,
                }), 400

            logger.info(f"Form exported: {result.pdf_filename}")
            return jsonify({
                'success': True,
                'filename': result.pdf_filename,
                'fields_filled': result.fields_filled,
                'fields_skipped': result.fields_skipped,
                'download_url': f"/api/download/{result.pdf_filename}",
            })

        except Exception as e:
            logger.error(f"Error exporting form: {e}")
            return jsonify({
                'success': False,
                'error': 'Unable to generate the DV-100 PDF right now. Please try again.'
            }), 500

    @app.route('/api/download/<filename>')
    def download_file(filename):
        """Download an exported PDF"""
        try:
            filepath = Path(exporter.output_dir) / Path(filename).name
            if not filepath.exists():
                return jsonify({'success': False, 'error': 'File not found'}), 404

            return send_file(filepath, as_attachment=True, download_name=filepath.name)

        except Exception as e:
            logger.error(f"Error downloading file: {e}")
            return jsonify({'success': False, 'error': str(e)}), 500

    @app.route('/api/health', methods=['GET'])
    def health():
        return jsonify({
            'success': True,
            'model_loaded': question_service.model_client is not None,
            'pdf_template_available': pdf_template_available(),
            'collaborators': config.COLLABORATOR_MODE,
        })

    return app


if __name__ == '__main__':
    print("\n" + "=" * 60)
    print("DV-100 INTAKE ASSISTANT - WEB INTERFACE")
    print("=" * 60)
    print("\nStarting server at http://localhost:5000")
    print("=" * 60 + "\n")

    create_app().run(debug=False, host='0.0.0.0', port=5000, threaded=True)
