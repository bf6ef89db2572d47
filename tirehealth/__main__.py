"""
Entry point for running tirehealth as a module.

Usage:
    python -m tirehealth assess --input example_capture.json
    python -m tirehealth make-example
    python -m tirehealth serve --port 8000
"""

from tirehealth.cli.main import cli

if __name__ == "__main__":
    cli()
