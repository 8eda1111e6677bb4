"""Launcher: checks settings (env or .env), then runs the Streamlit scorecard."""
import sys
from pathlib import Path

from streamlit.web import cli as stcli

from config import configure_logging, load_settings

ROOT = Path(__file__).resolve().parent


def main(argv: list[str] | None = None) -> int:
    settings = load_settings(ROOT)  # fail before the server starts on bad config
    configure_logging(settings.log_level)
    sys.argv = ["streamlit", "run", str(ROOT / "app.py"), *(argv or [])]
    return stcli.main()


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
