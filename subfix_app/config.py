"""
Global configuration settings for the subfix subtitle app.
"""
import os
import pathlib
import tempfile
from dotenv import load_dotenv

# Load environment variables from .env file if present
load_dotenv()

# Paths
APP_DIR = pathlib.Path(__file__).parent.absolute()
UPLOAD_DIR = pathlib.Path(
    os.environ.get("SUBFIX_UPLOAD_DIR", pathlib.Path(tempfile.gettempdir()) / "subfix_uploads")
)

# External model configuration
GOOGLE_API_KEY = os.environ.get("GOOGLE_API_KEY") or os.environ.get("GEMINI_API_KEY")
MODEL_NAME = os.environ.get("SUBFIX_MODEL", "gemini-3-flash")

# Analysis configuration
ANALYSIS_BATCH_SIZE = 50           # segments per LLM review request
DEFAULT_LLM_CONFIDENCE = 0.85      # used when the model omits a confidence
REPEATED_WORD_CONFIDENCE = 0.9
DEFAULT_CONTEXT = "General speech"

# Upload validation
MAX_CONTEXT_WORDS = 100
MAX_FILE_SIZE = 25 * 1024 * 1024   # 25MB
ALLOWED_MIME_TYPES = ("audio/mpeg", "audio/mp3", "video/mp4")
ALLOWED_EXTENSIONS = (".mp3", ".mp4")

# Cleanup configuration
CLEANUP_MAX_AGE_SEC = 60 * 60
CLEANUP_INTERVAL_SEC = 60 * 60


# Status values for jobs
class Status:
    PENDING = "pending"
    UPLOADING = "uploading"
    PROCESSING = "processing"
    TRANSCRIBING = "transcribing"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"

    # Forward order of the pipeline; FAILED may follow any non-terminal state
    FLOW = (PENDING, UPLOADING, PROCESSING, TRANSCRIBING, ANALYZING, COMPLETED)
    TERMINAL = (COMPLETED, FAILED)
    ALL = FLOW + (FAILED,)


# Anomaly categories
class AnomalyType:
    UNUSUAL_SENTENCE = "unusual_sentence"
    OUT_OF_CONTEXT = "out_of_context"
    SIMILAR_SOUNDING = "similar_sounding"
    GRAMMAR_ISSUE = "grammar_issue"

    ALL = (UNUSUAL_SENTENCE, OUT_OF_CONTEXT, SIMILAR_SOUNDING, GRAMMAR_ISSUE)
