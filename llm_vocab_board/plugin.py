from . import db
from typing import Any, List, Optional

import llm  # type: ignore

hookimpl = llm.hookimpl


def _load_model(model: str) -> Any:
    if not model or model == "none":
        return None
    import click

    try:
        return llm.get_model(model)
    except llm.UnknownModelError:
        click.echo(f"Model '{model}' not available; saving without enrichment.")
        return None


def _store_for(api_key: str) -> db.WordStore:
    import click

    account = db.get_account_by_api_key(api_key)
    if account is None:
        raise click.ClickException("Invalid API key. Create one with 'llm vb-create-account'.")
    return db.WordStore(account.id)


def _prompt_chooser(candidates: List[str]) -> Optional[str]:
    """Ask on the terminal which word a sentence belongs to. Blank or 'q'
    cancels; a number or the word itself selects."""
    import click

    click.echo("None of these words is saved yet. Which one should the sentence go under?")
    for i, word in enumerate(candidates, 1):
        click.echo(f"  {i:2d}. {word}")
    answer = click.prompt("Word (number or text, blank to cancel)", default="", show_default=False).strip()
    if not answer or answer.lower() == "q":
        return None
    if answer.isdigit() and 1 <= int(answer) <= len(candidates):
        return candidates[int(answer) - 1]
    return answer


@hookimpl  # type: ignore[misc]
def register_commands(cli: Any) -> None:
    import click
    from . import capture, scheduler
    from .text import ValidationError, is_word

    api_key_option = click.option(
        "--api-key", envvar="VOCAB_API_KEY", required=True,
        help="Account API key (or set VOCAB_API_KEY)",
    )

    @cli.command("vb-init-db")  # type: ignore[misc]
    def init_db() -> None:
        """Initialize the vocabulary board database."""
        db.init_db()
        click.echo("Database initialized.")

    @cli.command("vb-create-account")  # type: ignore[misc]
    @click.option("--name", default=None, help="Account display name")
    def create_account(name: Optional[str]) -> None:
        """Create an account and print its API key."""
        account = db.create_account(name=name)
        click.echo(f"Account {account.id} created. API key: {account.api_key}")

    @cli.command("vb-capture")  # type: ignore[misc]
    @click.argument("text")
    @click.option("--url", default="", help="Page the text came from")
    @click.option("--title", default="", help="Title of that page")
    @click.option("--model", default="gpt-4o-mini", help="LLM model used to enrich new words ('none' to skip)")
    @api_key_option
    def capture_text(text: str, url: str, title: str, model: str, api_key: str) -> None:
        """Save a word, or file a sentence under one of its words."""
        store = _store_for(api_key)
        try:
            result = capture.resolve_selection(
                store, text, url, title,
                model=_load_model(model), chooser=_prompt_chooser,
            )
        except ValidationError as e:
            raise click.ClickException(str(e))
        except db.StoreUnavailable as e:
            raise click.ClickException(f"Save failed: {e}")
        click.echo(result.message)

    @cli.command("vb-add")  # type: ignore[misc]
    @click.argument("word")
    @click.option("--model", default="gpt-4o-mini", help="LLM model used to enrich the word ('none' to skip)")
    @api_key_option
    def add_word(word: str, model: str, api_key: str) -> None:
        """Add a single word (or short phrase) by hand."""
        store = _store_for(api_key)
        if not is_word(word):
            click.echo(f"'{word.strip()}' is not a single word; saving it as a phrase.")
        try:
            result = capture.add_word(store, word, model=_load_model(model))
        except ValidationError as e:
            raise click.ClickException(str(e))
        except db.StoreUnavailable as e:
            raise click.ClickException(f"Save failed: {e}")
        click.echo(result.message)

    @cli.command("vb-list")  # type: ignore[misc]
    @api_key_option
    def list_words(api_key: str) -> None:
        """List saved words with their sentence and review counts."""
        entries = _store_for(api_key).list_all()
        if not entries:
            click.echo("No words saved yet.")
            return
        for entry in entries:
            click.echo(f"{entry.word:<24} sentences: {len(entry.sentences):2d}  reviews: {len(entry.review_times)}")

    @cli.command("vb-review")  # type: ignore[misc]
    @api_key_option
    def show_review(api_key: str) -> None:
        """Show words due today and overdue checkpoints."""
        import datetime

        views = scheduler.review_views(_store_for(api_key))
        if not views.today and not views.history:
            click.echo("🎉 Nothing to review! All caught up!")
            return
        if views.today:
            click.echo("Due today:")
            for entry in views.today:
                click.echo(f"  - {entry.word}")
        if views.history:
            click.echo("Overdue:")
            for item in views.history:
                day = datetime.datetime.fromtimestamp(item.checkpoint / 1000).strftime("%Y-%m-%d")
                click.echo(f"  - {item.entry.word} (since {day})")

    @cli.command("vb-mark")  # type: ignore[misc]
    @click.argument("word")
    @click.option("--undo", is_flag=True, help="Clear today's review instead of recording it")
    @api_key_option
    def mark_reviewed(word: str, undo: bool, api_key: str) -> None:
        """Record (or with --undo clear) today's review of a word."""
        store = _store_for(api_key)
        entry = store.find_by_word(word)
        if entry is None:
            raise click.ClickException(f"'{word}' is not in your vocabulary")
        updated = scheduler.set_reviewed(store, entry.id, checked=not undo)
        if updated is None:
            raise click.ClickException(f"'{word}' was deleted")
        if undo:
            click.echo(f"Cleared today's review of '{entry.word}'.")
        else:
            click.echo(f"📅 Reviewed '{entry.word}' ({len(updated.review_times)} reviews so far).")
