"""
Configuration for the DV-100 intake assistant

Static file locations, collaborator endpoints and model settings.
Every value can be overridden through the environment (or a .env file
loaded by the entry points).

PDF template:
    The fillable DV-100 template is not shipped with the repository (the
    court form is distributed by the Judicial Council of California). Use a
    copy of form DV-100 whose AcroForm widgets are named by the schema
    paths listed in data/dv100_pdf_field_mapping.txt, save it as
    data/DV-100-official.pdf or point DV100_PDF_TEMPLATE at it. Without
    it, export fails after validation passes, app.py logs a warning at
    startup and /api/health reports pdf_template_available = false.
"""

import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent

DATA_DIR = Path(os.getenv("DV100_DATA_DIR", PROJECT_ROOT / "data"))
STATE_DIR = Path(os.getenv("DV100_STATE_DIR", PROJECT_ROOT / "outputs" / "state"))
OUTPUT_DIR = Path(os.getenv("DV100_OUTPUT_DIR", PROJECT_ROOT / "outputs" / "forms"))

SCHEMA_PATH = DATA_DIR / "dv100_schema.json"
FLOW_PATH = DATA_DIR / "dv100_flow.json"
DERIVED_FIELDS_PATH = DATA_DIR / "derived_fields.json"
SCHEMA_OVERRIDES_PATH = DATA_DIR / "schema_path_overrides.json"
PDF_FIELD_MAPPING_PATH = DATA_DIR / "dv100_pdf_field_mapping.txt"
PDF_TEMPLATE_PATH = Path(os.getenv("DV100_PDF_TEMPLATE", DATA_DIR / "DV-100-official.pdf"))

# Collaborator endpoints (served by app.py unless pointed elsewhere)
API_BASE_URL = os.getenv("DV100_API_BASE_URL", "http://localhost:5000")
QUESTION_ENDPOINT = "/api/jura-question"
EXTRACT_ENDPOINT = "/api/jura-extract-answer"
HTTP_TIMEOUT = float(os.getenv("DV100_HTTP_TIMEOUT", "60"))

# "local": call the services in-process; "http": POST to API_BASE_URL
COLLABORATOR_MODE = os.getenv("DV100_COLLABORATORS", "local")

# Local model behind the collaborator endpoints
HF_MODEL_NAME = os.getenv("DV100_HF_MODEL", "mistralai/Mistral-7B-Instruct-v0.2")
HF_LOAD_IN_4BIT = os.getenv("DV100_HF_4BIT", "1") == "1"
LOAD_MODEL = os.getenv("DV100_LOAD_MODEL", "0") == "1"

# Persisted slot keys
STORAGE_KEYS = {
    "data": "dv100Chat_data",
    "messages": "dv100Chat_messages",
    "step": "dv100Chat_step",
}
