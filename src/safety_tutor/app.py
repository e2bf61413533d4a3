"""Interactive CLI application."""
import logging
from dataclasses import dataclass
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table

from safety_tutor.auth import Identity, LocalIdentityProvider
from safety_tutor.config import Settings
from safety_tutor.curriculum import TOPIC_CATEGORIES, day_title, get_topic, is_valid_day
from safety_tutor.dashboard import (
    certificate_topics, get_all_topic_stats, get_progress_color, is_certificate_eligible,
)
from safety_tutor.db import DocumentStore, init_db
from safety_tutor.generator import GeminiGenerator
from safety_tutor.lessons import LessonCache
from safety_tutor.models import TOTAL_DAYS, UserAccount
from safety_tutor.progress import ProgressStore
from safety_tutor.rules import ATTEMPTED, AVAILABLE, COMPLETED, LOCKED, day_status
from safety_tutor.schemas import Lesson
from safety_tutor.vocabulary import GENERATE_BATCH, Dictionary, DictionaryTerm

console = Console()
log = logging.getLogger(__name__)

EXIT_WORDS = ("q", "menu")
STATUS_STYLE = {LOCKED: "dim", AVAILABLE: "cyan", ATTEMPTED: "yellow", COMPLETED: "green"}


class SessionExitRequested(Exception):
    """Raised when the user types q or menu in the middle of a lesson."""


def session_prompt(prompt: str, **kwargs) -> str:
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


@dataclass
class AppContext:
    progress: ProgressStore
    lessons: LessonCache
    dictionary: Dictionary
    identity: LocalIdentityProvider
    settings: Settings
    user: Optional[UserAccount] = None

    def close(self):
        close = getattr(self.lessons.generator, "close", None)
        if close is not None:
            close()


def build_context(settings: Settings) -> AppContext:
    init_db(settings.db_path)
    store = DocumentStore(settings.db_path)
    generator = GeminiGenerator(settings.gemini_api_key, settings.gemini_model, timeout=settings.gemini_timeout)
    ctx = AppContext(
        progress=ProgressStore(store),
        lessons=LessonCache(store, generator),
        dictionary=Dictionary(store, generator),
        identity=LocalIdentityProvider(),
        settings=settings,
    )

    def on_auth_change(identity):
        ctx.user = ctx.progress.handle_auth_change(identity)

    ctx.identity.subscribe(on_auth_change)
    return ctx


def show_welcome():
    console.print(Panel(
        "[bold]Safety English[/bold]\n[dim]60-day occupational safety English course[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("lesson", "Today's lesson and quiz"),
        ("topics", "List topics"),
        ("start", "Start a topic"),
        ("plan", "View a topic's 60-day plan"),
        ("dictionary", "Search safety terms"),
        ("flashcards", "Flashcard drill"),
        ("dashboard", "Progress overview"),
        ("profile", "Edit your profile"),
        ("regenerate", "Regenerate a lesson"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def ask_topic(ctx: AppContext, started_only: bool = True) -> str | None:
    topic_ids = [t["id"] for t in TOPIC_CATEGORIES]
    if started_only:
        topic_ids = [t for t in topic_ids if t in ctx.user.topics]
    if not topic_ids:
        console.print("[yellow]Start a topic first with 'start'.[/yellow]")
        return None
    for i, topic_id in enumerate(topic_ids, 1):
        console.print(f"  [cyan]{i}[/cyan]) {get_topic(topic_id)['name']}")
    choice = Prompt.ask("Select topic", choices=[str(i) for i in range(1, len(topic_ids) + 1)])
    return topic_ids[int(choice) - 1]


def ask_dictionary_topic(ctx: AppContext) -> str | None:
    """Pick one topic's terms, or None for every topic."""
    counts = ctx.dictionary.topic_counts()
    console.print(f"  [cyan]0[/cyan]) All topics ({sum(counts.values())} terms)")
    for i, topic in enumerate(TOPIC_CATEGORIES, 1):
        console.print(f"  [cyan]{i}[/cyan]) {topic['name']} ({counts[topic['id']]})")
    choice = Prompt.ask(
        "Select topic", choices=[str(i) for i in range(len(TOPIC_CATEGORIES) + 1)], default="0",
    )
    return None if choice == "0" else TOPIC_CATEGORIES[int(choice) - 1]["id"]


def ask_day(default: int) -> int:
    while True:
        day = IntPrompt.ask("Day", default=default)
        if is_valid_day(day):
            return day
        console.print(f"[red]Day must be between 1 and {TOTAL_DAYS}.[/red]")


def show_terms(terms: list[DictionaryTerm], title: str = "Dictionary"):
    if not terms:
        console.print("[yellow]No matching terms.[/yellow]")
        return
    table = Table(title=f"{title} ({len(terms)})")
    table.add_column("Term", style="cyan")
    table.add_column("Meaning")
    table.add_column("Topic", style="dim")
    for t in terms:
        table.add_row(f"{t.term} {t.pronunciation}".strip(), t.meaning, get_topic(t.topic_id)["name"])
    console.print(table)


def run_flashcard_session(ctx: AppContext, cards: list[DictionaryTerm]):
    if not cards:
        console.print("[yellow]No flashcards left here. Every term is learned![/yellow]")
        return
    console.print(f"\n[bold]Flashcard Session[/bold] — {len(cards)} cards\n")
    for i, card in enumerate(cards, 1):
        console.print(Panel(card.term, title=f"Card {i}/{len(cards)}", border_style="cyan"))
        session_prompt("[dim]Press Enter to reveal the meaning[/dim]", default="")
        back = card.meaning + (f"\n[dim]{card.example}[/dim]" if card.example else "")
        console.print(Panel(back, border_style="green"))
        answer = session_prompt(
            "Learned it? (y = learned, n = review again)", choices=["y", "n"] + list(EXIT_WORDS),
            show_choices=False,
        )
        ctx.user = ctx.progress.mark_term(ctx.user, card.topic_id, card.term, learned=answer == "y")
        console.print()


def show_lesson(lesson: Lesson):
    heading = "[red]CHECKPOINT TEST[/red]" if lesson.is_checkpoint else lesson.title
    console.print(Panel(heading, title=f"Day {lesson.day_id}", border_style="blue"))

    table = Table(title="Vocabulary")
    table.add_column("Term", style="cyan")
    table.add_column("Meaning")
    table.add_column("Example", style="dim")
    for v in lesson.vocabulary:
        term = f"{v.term} {v.pronunciation}".strip()
        table.add_row(term, v.meaning, v.example)
    console.print(table)

    console.print("\n[bold]Dialogue[/bold]")
    for line in lesson.dialogue:
        console.print(f"  [cyan]{line.speaker}[/cyan] [dim]({line.role})[/dim]: {line.text}")

    s = lesson.scenario
    console.print(Panel(s.description, title=f"{s.title} — risk: {s.risk_level}", border_style="yellow"))


def run_quiz_session(lesson: Lesson) -> int:
    """Ask every question and return the score as a whole percentage."""
    correct = 0
    letters = ["a", "b", "c", "d"]
    console.print(f"\n[bold]Quiz[/bold] — {len(lesson.quiz)} questions\n")
    for i, q in enumerate(lesson.quiz, 1):
        console.print(f"[bold]Q{i}.[/bold] {q.prompt}\n")
        for letter, option in zip(letters, q.options):
            console.print(f"  [cyan]{letter})[/cyan] {option}")
        answer = session_prompt("\nYour answer", choices=letters + list(EXIT_WORDS), show_choices=False)
        if letters.index(answer) == q.correct_option:
            console.print("[green]Correct![/green]")
            correct += 1
        else:
            console.print(f"[red]Incorrect.[/red] Answer: [green]{letters[q.correct_option]}[/green]")
        console.print()
    return round(correct / len(lesson.quiz) * 100)


def cmd_lesson(ctx: AppContext):
    topic_id = ask_topic(ctx)
    if not topic_id:
        return
    progress = ctx.user.topics[topic_id]
    day = ask_day(progress.current_day)
    if day_status(ctx.user, topic_id, day) == LOCKED:
        console.print(f"[yellow]Day {day} is locked. Finish day {progress.current_day} first.[/yellow]")
        return
    with console.status("Preparing your lesson (this may take 10-20 seconds)..."):
        lesson = ctx.lessons.get_lesson(topic_id, day)
    show_lesson(lesson)
    session_prompt("[dim]Press Enter to start the quiz[/dim]", default="")
    score = run_quiz_session(lesson)
    outcome = ctx.progress.submit_quiz_result(ctx.user, topic_id, day, score)
    ctx.user = outcome.user
    if outcome.passed:
        console.print(f"[bold green]Passed with {score}%![/bold green] Current day: {ctx.user.topics[topic_id].current_day}")
    else:
        console.print(f"[bold red]{score}% — you need 80% to pass. Try again.[/bold red]")


def cmd_topics(ctx: AppContext):
    table = Table(title="Topics")
    table.add_column("Topic", style="cyan")
    table.add_column("Description")
    table.add_column("Status")
    for topic in TOPIC_CATEGORIES:
        progress = ctx.user.topics.get(topic["id"])
        status = f"Day {progress.current_day}" if progress else "[dim]Not started[/dim]"
        table.add_row(topic["name"], topic["description"], status)
    console.print(table)


def cmd_start(ctx: AppContext):
    topic_id = ask_topic(ctx, started_only=False)
    if topic_id:
        progress = ctx.progress.initialize_topic(ctx.user, topic_id)
        console.print(f"[green]{get_topic(topic_id)['name']} — you are on day {progress.current_day}.[/green]")


def cmd_plan(ctx: AppContext):
    topic_id = ask_topic(ctx)
    if not topic_id:
        return
    progress = ctx.user.topics[topic_id]
    table = Table(title=f"{get_topic(topic_id)['name']} — 60-Day Plan")
    table.add_column("Day", justify="right")
    table.add_column("Lesson")
    table.add_column("Score", justify="right")
    table.add_column("Status")
    for day in range(1, TOTAL_DAYS + 1):
        status = day_status(ctx.user, topic_id, day)
        style = STATUS_STYLE[status]
        score = progress.quiz_scores.get(day)
        table.add_row(
            str(day), day_title(day),
            f"{score}%" if score is not None else "",
            f"[{style}]{status}[/{style}]",
        )
    console.print(table)


def cmd_dashboard(ctx: AppContext):
    user = ctx.user
    console.print(Panel(
        f"[bold]{user.name}[/bold]  |  Streak: [bold]{user.streak}[/bold] day(s)",
        title="Dashboard", border_style="blue",
    ))
    table = Table(title="Topics")
    table.add_column("Topic", style="cyan")
    table.add_column("Day", justify="right")
    table.add_column("Completed", justify="right")
    table.add_column("Avg Score", justify="right")
    table.add_column("Status")
    for stats in get_all_topic_stats(user):
        color = get_progress_color(stats["percent_complete"])
        table.add_row(
            stats["name"],
            str(stats["current_day"] or "-"),
            f"{stats['completed']}/{TOTAL_DAYS}",
            f"{stats['avg_score']}%",
            f"[{color}]{stats['label']}[/{color}]",
        )
    console.print(table)
    if is_certificate_eligible(user):
        names = ", ".join(get_topic(t)["name"] for t in certificate_topics(user))
        console.print(f"\n  [green]Certificate unlocked: {names}[/green]")
    else:
        console.print("\n  [dim]Complete all 60 days of a topic to earn your certificate.[/dim]")


def cmd_dictionary(ctx: AppContext):
    topic_id = ask_dictionary_topic(ctx)
    query = Prompt.ask("Search (blank for all)", default="")
    show_terms(ctx.dictionary.search(query, topic_id))
    if topic_id and Confirm.ask(f"Generate {GENERATE_BATCH} more terms with AI?", default=False):
        with console.status("Generating terms..."):
            new_terms = ctx.dictionary.generate_more(topic_id)
        console.print(f"[green]Saved {len(new_terms)} new terms.[/green]")
        if new_terms:
            show_terms(new_terms, title="New terms")


def cmd_flashcards(ctx: AppContext):
    topic_id = ask_dictionary_topic(ctx)
    run_flashcard_session(ctx, ctx.dictionary.flashcard_deck(ctx.user, topic_id))


def cmd_profile(ctx: AppContext):
    user = ctx.user
    changes = {
        "name": Prompt.ask("Name", default=user.name),
        "job_title": Prompt.ask("Job title", default=user.job_title),
        "company": Prompt.ask("Company", default=user.company),
    }
    changes = {k: v for k, v in changes.items() if v != getattr(user, k)}
    ctx.user = ctx.progress.save_profile(user, **changes)
    console.print("[green]Profile saved.[/green]")


def cmd_regenerate(ctx: AppContext):
    topic_id = ask_topic(ctx, started_only=False)
    if not topic_id:
        return
    scope = Prompt.ask("Regenerate", choices=["day", "all"], default="day")
    if scope == "all":
        with console.status(f"Regenerating {TOTAL_DAYS} lessons..."):
            report = ctx.lessons.regenerate_topic(topic_id, delay=ctx.settings.regenerate_delay)
        console.print(f"[green]{report.success} regenerated[/green], [red]{report.failed} failed[/red]")
        for error in report.errors:
            console.print(f"  [dim]{error}[/dim]")
        return
    day = ask_day(1)
    with console.status("Regenerating..."):
        lesson = ctx.lessons.get_lesson(topic_id, day, force_regenerate=True)
    console.print(f"[green]Day {day} regenerated: {lesson.title}[/green]")


def sign_in(ctx: AppContext):
    email = Prompt.ask("Email").strip()
    name = Prompt.ask("Name", default=email.split("@")[0])
    ctx.identity.sign_in(Identity(uid=email.lower(), email=email, display_name=name))


COMMANDS = {
    "lesson": cmd_lesson,
    "topics": cmd_topics,
    "start": cmd_start,
    "plan": cmd_plan,
    "dictionary": cmd_dictionary,
    "flashcards": cmd_flashcards,
    "dashboard": cmd_dashboard,
    "profile": cmd_profile,
    "regenerate": cmd_regenerate,
}


def main():
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level, format="%(message)s", handlers=[RichHandler(console=console)],
    )
    ctx = build_context(settings)
    try:
        show_welcome()
        sign_in(ctx)
        console.print(f"[green]Welcome, {ctx.user.name}![/green]")
        run_menu(ctx)
    finally:
        ctx.close()


def run_menu(ctx: AppContext):
    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="lesson").strip().lower()
        try:
            if choice in ("quit", "exit", "q"):
                ctx.identity.sign_out()
                console.print("[dim]Stay safe![/dim]")
                break
            command = COMMANDS.get(choice)
            if command is None:
                console.print("[red]Unknown command. Try again.[/red]")
            else:
                command(ctx)
        except SessionExitRequested:
            console.print("[dim]Session left. Your progress is saved.[/dim]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except Exception as e:
            log.debug("Command %s failed", choice, exc_info=True)
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
