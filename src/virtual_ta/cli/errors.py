"""virtual-ta rich error messages: actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from virtual_ta.cli.errors import err_no_db
    console.print(err_no_db(".virtual_ta.db"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from virtual_ta.rag.llm_client import api_key_env, provider_of


def err_no_db(db_path: str = ".virtual_ta.db") -> str:
    """No database at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  virtual-ta init"
    )


def err_no_api_key(model: str) -> str:
    """Model credentials missing.

    Example:
        No API key for 'openai' (model openai/gpt-4o-mini). Set:  export OPENAI_API_KEY=sk-...
    """
    env_var = api_key_env(model) or f"{provider_of(model).upper()}_API_KEY"
    return (
        f"[yellow]Warning:[/] No API key for '{provider_of(model)}' (model {model}).\n"
        f"  Answers use the offline fallback. Set:  export {env_var}=sk-..."
    )


def err_config(message: str) -> str:
    """Config file or config-store entry is invalid."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {message}\n"
        "  Fix virtual_ta.yaml, or run:  virtual-ta config list"
    )


def err_question_required() -> str:
    return (
        "[red]Error:[/] Question is required.\n"
        "  Example:  virtual-ta ask \"How do I submit GA1?\""
    )


def err_image_too_large(path: str, limit_mb: float) -> str:
    return (
        f"[red]Error:[/] Image exceeds {limit_mb:g} MB limit: '{path}'\n"
        "  Crop or compress the screenshot and try again."
    )


def err_image_not_found(path: str) -> str:
    return (
        f"[red]Error:[/] Image file not found: '{path}'\n"
        "  Pass a path to a .png, .jpg, .gif or .webp file."
    )


def err_reindex_in_progress() -> str:
    return (
        "[red]Error:[/] A reindex is already running.\n"
        "  Wait for it to finish, then run:  virtual-ta status"
    )


def err_provider(message: str) -> str:
    """Embedding or chat provider call failed."""
    return (
        f"[red]Error:[/] Model provider call failed.\n"
        f"  {message}\n"
        "  Check your API key and network, or retry with:  --offline"
    )


def err_invalid_records(path: str, message: str) -> str:
    return (
        f"[red]Error:[/] Could not load records from '{path}'.\n"
        f"  {message}\n"
        "  Each record needs type (course|forum), title, url and body or html."
    )


def err_source_not_found(path: str) -> str:
    return (
        f"[red]Error:[/] Source file not found: '{path}'\n"
        "  Pass a .json or .yaml file with --source."
    )


def err_unknown_config_key(key: str, known: list[str]) -> str:
    return (
        f"[yellow]Warning:[/] '{key}' is not read by the answer pipeline.\n"
        f"  Known keys: {', '.join(known)}"
    )
