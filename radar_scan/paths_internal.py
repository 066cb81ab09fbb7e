from pathlib import Path

# Path to the package root
PACKAGE_DIR = Path(__file__).parent

# Path to the bundled configs directory
CONFIG_DIR = PACKAGE_DIR / "configs"

# Default pipeline configuration
DEFAULT_CONFIG_PATH = CONFIG_DIR / "ars430_default.yaml"
