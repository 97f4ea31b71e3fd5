import os
import tempfile

# Keep test runs from writing into the repo's logs/ directory
os.environ.setdefault("REEL_BATCH_LOG_DIR", tempfile.mkdtemp(prefix="reel_batch_logs_"))
