import logging
from typing import NamedTuple, Optional

# General
LOG_LEVEL = logging.INFO  # DEBUG for per-request lines
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(filename)s:%(lineno)d - %(message)s'
LOG_FILE: Optional[str] = None  # e.g. "vlm_benchmark.log" to also log to a file
RESULTS_DIR = "benchmarks/results"  # Timestamped JSON snapshots land here

# Target defaults
DEFAULT_URL = "http://localhost:3001/api/tag"
DEFAULT_RUNS = 20
DEFAULT_CONCURRENCY = 1
DEFAULT_TIMEOUT_MS = 60000

# Upload
IMAGE_FIELD_NAME = "image"
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png")
PNG_CONTENT_TYPE = "image/png"
DEFAULT_CONTENT_TYPE = "image/jpeg"

# Output
RESULT_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


class RunConfig(NamedTuple):
    url: str
    runs: int
    concurrency: int
    timeout_ms: int
    image: Optional[str] = None  # raw --image value
    images_dir: Optional[str] = None  # raw --images-dir value
    output_dir: str = RESULTS_DIR

    def to_json(self):
        # output_dir is a local detail, not part of the persisted config block
        return {
            "url": self.url,
            "runs": self.runs,
            "concurrency": self.concurrency,
            "timeout_ms": self.timeout_ms,
            "image": self.image,
            "images_dir": self.images_dir,
        }
