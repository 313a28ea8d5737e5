"""
Tests for the Flask web application

Uses the Flask test client with an injected DialogueManager (in-memory
persistence, mocked collaborators), services without a model, and a
mock exporter.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from app import create_app
from dv100.contracts import ExtractionResult, FlowStep
from dv100.core.dialogue_manager import DialogueManager
from dv100.core.form_exporter import FormExporter
from dv100.core.pdf_filler import PdfFormFiller
from dv100.core.schema_paths import SchemaPathResolver
from dv100.persistence import InMemoryStorage, IntakePersistence
from dv100.results import ExportBlocked, ExportReport
from dv100.services import FALLBACK_QUESTION, ExtractionService, QuestionService


class MockQuestionGenerator:
    def generate(self, step, answers, last_user_message):
        return f"Q:{step.id}"


class MockAnswerExtractor:
    def extract(self, step, user_input):
        return ExtractionResult(cleaned=user_input, unsure=False)


class MockExporter:
    """Returns a preset result; records the documents it was given"""

    def __init__(self, result=None, error=None, output_dir="."):
        self.result = result
        self.error = error
        self.output_dir = output_dir
        self.calls = []

    def export(self, document):
        self.calls.append(document)
        if self.error:
            raise self.error
        return self.result


SCHEMA = {
    "protectedPerson": {"petitionerName": ""},
    "restrainedPerson": {"respondentName": ""},
}

STEPS = [
    FlowStep(page=1, id="petitionerName", type="text", required=True),
    FlowStep(page=2, id="respondentName", type="text", required=True),
]


def create_manager():
    return DialogueManager(
        steps=STEPS,
        derived_map={},
        path_resolver=SchemaPathResolver(SCHEMA),
        question_generator=MockQuestionGenerator(),
        answer_extractor=MockAnswerExtractor(),
        persistence=IntakePersistence(InMemoryStorage(), SCHEMA),
    )


@pytest.fixture
def exporter(tmp_path):
    return MockExporter(output_dir=tmp_path)


@pytest.fixture
def client(exporter):
    app = create_app(
        dialogue_manager=create_manager(),
        exporter=exporter,
        question_service=QuestionService(),
        extraction_service=ExtractionService(),
    )
    app.config['TESTING'] = True
    return app.test_client()


def test_state_after_fresh_start(client):
    data = client.get('/api/state').get_json()

    assert data['success'] is True
    assert data['status'] == 'not-started'
    assert data['messages'][0]['id'] == 'jura-intro'
    assert data['progress'] == {'completed': 0, 'total': 2}


def test_chat_advances_flow(client):
    """Test first message asks step one, next answer advances"""
    first = client.post('/api/chat', json={'message': "hi"}).get_json()
    assert first['reply'] == 'Q:petitionerName'
    assert first['status'] == 'in-progress'

    second = client.post('/api/chat', json={'message': 'Jane Doe'}).get_json()
    assert second['reply'] == 'Q:respondentName'
    assert second['progress']['completed'] == 1

    progress = client.get('/api/progress').get_json()
    assert progress['step'] == 'respondentName'

    print("✓ Chat flow test passed")


def test_chat_rejects_empty_message(client):
    response = client.post('/api/chat', json={'message': '   '})

    assert response.status_code == 400
    assert response.get_json()['success'] is False


def test_validate_reports_missing(client):
    data = client.get('/api/validate').get_json()

    assert data['ok'] is False
    assert 'Missing: Respondent name' in data['messages']
    assert data['issue_path'] == 'protectedPerson.petitionerName'


def test_preview_groups(client):
    client.post('/api/chat', json={'message': 'hi'})
    client.post('/api/chat', json={'message': 'Jane Doe'})

    data = client.get('/api/preview').get_json()

    assert data['success'] is True
    assert data['valid'] is False
    assert isinstance(data['groups'], list)


def test_export_blocked(client, exporter):
    exporter.result = ExportBlocked(
        validation={},
        messages=['Missing: Respondent name'],
        issue_path='restrainedPerson.respondentName',
    )

    response = client.post('/api/export')
    data = response.get_json()

    assert response.status_code == 400
    assert data['blocked'] is True
    assert data['messages'] == ['Missing: Respondent name']
    assert data['issue_path'] == 'restrainedPerson.respondentName'


def test_export_success(client, exporter, tmp_path):
    exporter.result = ExportReport(
        pdf_path=str(tmp_path / 'DV-100_test.pdf'),
        pdf_filename='DV-100_test.pdf',
        fields_filled=12,
        fields_skipped=[],
    )

    data = client.post('/api/export').get_json()

    assert data['success'] is True
    assert data['download_url'] == '/api/download/DV-100_test.pdf'
    assert data['fields_filled'] == 12


def test_export_failure_uses_generic_message(client, exporter):
    exporter.error = FileNotFoundError("PDF template not found")

    response = client.post('/api/export')

    assert response.status_code == 500
    assert response.get_json()['error'] == 'Unable to generate the DV-100 PDF right now. Please try again.'


def test_download(client, tmp_path):
    (tmp_path / 'DV-100_test.pdf').write_bytes(b'%PDF-1.4 test')

    assert client.get('/api/download/DV-100_test.pdf').status_code == 200
    assert client.get('/api/download/nope.pdf').status_code == 404


def test_reset(client):
    client.post('/api/chat', json={'message': 'hi'})

    data = client.post('/api/reset').get_json()

    assert data['status'] == 'not-started'


def test_collaborator_endpoints_without_model(client):
    """Test no-model fallbacks on the collaborator endpoints"""
    question = client.post('/api/jura-question', json={'currentFieldId': 'courtName'})
    assert question.mimetype == 'text/plain'
    assert question.get_data(as_text=True) == FALLBACK_QUESTION

    extraction = client.post('/api/jura-extract-answer', json={
        'fieldId': 'petitionerName', 'fieldKind': 'name', 'userInput': 'Jane'
    }).get_json()
    assert extraction == {'answer': '', 'error': 'NO_MODEL'}


def test_health(client):
    data = client.get('/api/health').get_json()
    assert data['model_loaded'] is False


def test_health_reports_missing_pdf_template(tmp_path):
    """Test a missing template is visible before anyone tries to export"""
    exporter = FormExporter(
        PdfFormFiller(tmp_path / "DV-100-official.pdf", tmp_path / "mapping.txt"),
        {},
        tmp_path
    )
    app = create_app(
        dialogue_manager=create_manager(),
        exporter=exporter,
        question_service=QuestionService(),
        extraction_service=ExtractionService(),
    )

    assert app.test_client().get('/api/health').get_json()['pdf_template_available'] is False

    (tmp_path / "DV-100-official.pdf").write_bytes(b'%PDF-1.4 test')
    assert app.test_client().get('/api/health').get_json()['pdf_template_available'] is True
