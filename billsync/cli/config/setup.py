"""Setup and initialization module."""

from rich.console import Console

console = Console()


def show_setup_instructions() -> None:
    """Show setup instructions."""
    instructions = """
    [bold cyan]billsync Setup Instructions[/]
    
    1. Install the package:
       pip install billsync
    
    2. Set up Google Cloud credentials:
       gcloud auth application-default login
       or point GOOGLE_APPLICATION_CREDENTIALS at a service account key
    
    3. Configure your billing export:
       - Enable BigQuery billing export in GCP Console
       - export GOOGLE_CLOUD_PROJECT=YOUR_PROJECT
       - export BILLING_DATASET_ID=billing_export
       - export BILLING_TABLE_ID=gcp_billing_export_v1_XXXXXX_XXXXXX_XXXXXX
    
    4. Share the target spreadsheet with the service account as an editor.
    
    5. Preview and sync:
       billsync preview --start-date 2026-01-01
       billsync sync --spreadsheet-id YOUR_SPREADSHEET_ID
    
    6. Serve the scheduler endpoint:
       billsync serve --port 8080
       curl -X POST "http://localhost:8080/api/update-sheets?spreadsheet_id=YOUR_SPREADSHEET_ID"
    """
    console.print(instructions)
