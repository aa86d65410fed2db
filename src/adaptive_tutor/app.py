"""Interactive CLI application."""
import logging
import string

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Prompt, IntPrompt
from rich.table import Table

from adaptive_tutor.config import DEFAULT_DB_PATH, LOG_LEVEL
from adaptive_tutor.dashboard import get_learner_stats, get_mastery_color, get_topic_scores
from adaptive_tutor.db import init_db
from adaptive_tutor.diagnostic import (
    complete_diagnostic, get_diagnostic_questions, grade_diagnostic, skip_diagnostic,
)
from adaptive_tutor.errors import TutorError
from adaptive_tutor.progress import get_parent_summaries_by_user, get_user_progress
from adaptive_tutor.questions import get_topics_by_subject
from adaptive_tutor.seed import is_seeded, seed_all
from adaptive_tutor.session import ACTIVE, SessionEngine
from adaptive_tutor.users import create_user, get_user_by_username, record_login, update_user

console = Console()


def setup_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=level, format="%(message)s", datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def option_letters(count: int) -> list[str]:
    return list(string.ascii_lowercase[:count])


def show_welcome():
    console.print(Panel(
        "[bold]Adaptive Tutor[/bold]\n[dim]Short sessions that adjust to you[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("learn", "Start a learning session"),
        ("diagnostic", "Take a topic's placement check"),
        ("dashboard", "Mastery, XP and badges"),
        ("summaries", "Parent summaries"),
        ("profile", "Weekly goals and parent contact"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def ask_profile(user) -> dict:
    fields = {
        "weekly_goal_topics": IntPrompt.ask("Topics per week", default=user.weekly_goal_topics),
        "weekly_goal_minutes": IntPrompt.ask("Minutes per day", default=user.weekly_goal_minutes),
    }
    contact = Prompt.ask("Parent contact (blank to skip)", default=user.parent_contact or "").strip()
    fields["parent_contact"] = contact or None
    return fields


def onboard(db_path: str, user):
    console.print("[dim]Set your learning goals.[/dim]")
    return update_user(db_path, user.id, **ask_profile(user))


def sign_in(db_path: str):
    username = Prompt.ask("Username").strip()
    user = get_user_by_username(db_path, username)
    if user is None:
        console.print("[dim]New here? Let's create your profile.[/dim]")
        name = Prompt.ask("Your name")
        password = Prompt.ask("Choose a password", password=True)
        grade = IntPrompt.ask("Grade (6-12)", default=6)
        user = create_user(db_path, name=name, username=username, password=password, grade=grade)
        user = onboard(db_path, user)
    return record_login(db_path, user.id)


def choose_topic(db_path: str, subject: str):
    topics = get_topics_by_subject(db_path, subject)
    if not topics:
        console.print(f"[yellow]No topics for {subject} yet.[/yellow]")
        return None
    for t in topics:
        lock = " [dim](locked)[/dim]" if t.is_locked else ""
        console.print(f"  [cyan]{t.id}[/cyan]) {t.name}{lock}")
    topic_id = IntPrompt.ask("Select topic", choices=[str(t.id) for t in topics])
    return next(t for t in topics if t.id == topic_id)


def show_question(view) -> None:
    console.print(
        f"\n[bold]Question {view.question_number}/{view.total_questions}[/bold]"
        f"  [dim]Level {view.difficulty}"
        + (f" | Accuracy {view.accuracy}%" if view.accuracy is not None else "")
        + "[/dim]"
    )
    console.print(f"{view.question}\n")
    for letter, text in zip(option_letters(len(view.options)), view.options):
        console.print(f"  [cyan]{letter})[/cyan] {text}")
    if view.hint:
        console.print(Panel(view.hint, title="Hint", border_style="yellow"))


def show_feedback(view) -> None:
    answer = view.last_answer
    if answer is None:
        return
    if answer["correct"]:
        console.print("[green]Correct! Great job.[/green]")
    else:
        console.print(f"[red]Incorrect.[/red] Correct answer: [green]{answer['correct_text']}[/green]")


def run_checkpoint(engine: SessionEngine, session_id: int):
    console.print(Panel(
        "Looks like you might be stuck. That's okay!\n"
        "  [cyan]c[/cyan]) Keep going as is\n"
        "  [cyan]e[/cyan]) Try an easier example",
        title="Checkpoint", border_style="magenta",
    ))
    choice = Prompt.ask("Choose", choices=["c", "e"], default="c")
    if choice == "e":
        return engine.simplify_after_checkpoint(session_id)
    return engine.continue_after_checkpoint(session_id)


def run_learning_session(engine: SessionEngine, user_id: int, topic_id: int):
    """Drive one session to completion. Returns the completion report or None if left early."""
    view = engine.start_session(user_id, topic_id)
    session_id = view.session_id
    try:
        while view.status == ACTIVE:
            if view.checkpoint:
                view = run_checkpoint(engine, session_id)
                continue
            show_question(view)
            letters = option_letters(len(view.options))
            answer = Prompt.ask("\nYour answer ([dim]h[/dim] hint, [dim]q[/dim] quit)",
                                choices=letters + ["h", "q"])
            if answer == "q":
                return None
            if engine.view(session_id).checkpoint:
                # The answer was typed before the checkpoint; ask again afterwards.
                view = run_checkpoint(engine, session_id)
                continue
            if answer == "h":
                view = engine.request_hint(session_id)
                if view.hint is None:
                    console.print("[dim]No hint for this one.[/dim]")
                continue
            view = engine.submit_answer(session_id, letters.index(answer))
            show_feedback(view)
    finally:
        if view.status == ACTIVE:
            engine.abandon(session_id)
    return view.report


def show_completion(report) -> None:
    outcome = report.outcome
    lines = [
        f"Accuracy: [bold]{outcome.accuracy}%[/bold]",
        f"Mastery: [bold]{outcome.new_mastery}%[/bold] (+{outcome.mastery_delta})",
        f"XP earned: [bold]{outcome.xp_earned}[/bold]",
    ]
    if outcome.badge_earned:
        lines.append(f"[yellow]Badge unlocked: {outcome.badge_name}[/yellow]")
    console.print(Panel("\n".join(lines), title="Session Complete", border_style="green"))
    if not report.complete:
        failed = ", ".join(sorted(report.failures))
        console.print(f"[red]Some results could not be saved ({failed}). Try again later.[/red]")


def cmd_learn(engine: SessionEngine, user):
    topic = choose_topic(engine.db_path, user.current_subject)
    if topic is None:
        return
    report = run_learning_session(engine, user.id, topic.id)
    if report is None:
        console.print("[dim]Session left unfinished.[/dim]")
        return
    show_completion(report)


def cmd_diagnostic(db_path: str, user):
    topic = choose_topic(db_path, user.current_subject)
    if topic is None:
        return
    if get_user_progress(db_path, user.id, topic.id) is not None:
        console.print(f"[yellow]You've already been assessed on {topic.name}.[/yellow]")
        return
    questions = get_diagnostic_questions(db_path, topic.id)
    if not questions:
        console.print("[yellow]No diagnostic available for this topic.[/yellow]")
        return
    console.print(f"\n[bold]Quick {len(questions)}-question check on {topic.name}[/bold]")
    if Prompt.ask("Take it now?", choices=["y", "skip"], default="y") == "skip":
        result = skip_diagnostic(db_path, user.id, topic.id)
    else:
        answers = []
        for i, q in enumerate(questions, 1):
            console.print(f"\n[bold]Q{i}.[/bold] {q.text}")
            letters = option_letters(len(q.options))
            for letter, text in zip(letters, q.options):
                console.print(f"  [cyan]{letter})[/cyan] {text}")
            answers.append(letters.index(Prompt.ask("Your answer", choices=letters)))
        score = grade_diagnostic(questions, answers)
        result = complete_diagnostic(db_path, user.id, topic.id, score, len(questions))
    console.print(Panel(
        f"Starting level: [bold]{result.level}[/bold] ({result.label})\n"
        f"You got {result.score} out of {result.total} correct.\n{result.message}",
        title="Diagnostic Complete", border_style="blue",
    ))


def cmd_dashboard(db_path: str, user):
    stats = get_learner_stats(db_path, user.id)
    streak = stats["streak"]
    console.print(Panel(
        f"[bold]{user.name}[/bold]  |  XP: [bold]{stats['xp_points']}[/bold]  |  "
        f"Streak: [bold]{streak}[/bold] day{'' if streak == 1 else 's'}",
        title="Dashboard", border_style="blue",
    ))
    table = Table(title=f"{user.current_subject} Topics")
    table.add_column("Topic", style="cyan")
    table.add_column("Mastery", justify="right")
    table.add_column("Status")
    for ts in get_topic_scores(db_path, user.id, user.current_subject):
        color = get_mastery_color(ts["mastery"])
        table.add_row(
            f"{ts['order']}. {ts['name']}" + (" (locked)" if ts["is_locked"] else ""),
            f"{ts['mastery']}%",
            f"[{color}]{ts['label']}[/{color}]",
        )
    console.print(table)
    console.print(
        f"\n  Weekly goal: [bold]{stats['weekly_topics_done']}/{stats['weekly_goal_topics']}[/bold] "
        f"topics ({stats['weekly_goal_percent']}%)  |  "
        f"Daily target: {stats['weekly_goal_minutes']} minutes"
    )
    console.print(f"  Sessions: [bold]{stats['sessions_completed']}[/bold]  |  "
                  f"Avg accuracy: [bold]{stats['avg_accuracy']}%[/bold]")
    if stats["badges"]:
        console.print("  Badges: " + ", ".join(f"[yellow]{b}[/yellow]" for b in stats["badges"]))


def cmd_summaries(db_path: str, user):
    summaries = get_parent_summaries_by_user(db_path, user.id)
    if not summaries:
        console.print("[dim]No summaries yet. Finish a session first.[/dim]")
        return
    for s in summaries:
        status = "[green]sent[/green]" if s.sent else "[dim]pending[/dim]"
        console.print(f"  #{s.session_id} {status} {s.content}")


def cmd_profile(db_path: str, user):
    user = update_user(db_path, user.id, **ask_profile(user))
    console.print(f"[green]Saved.[/green] Goal: {user.weekly_goal_topics} topics a week, "
                  f"{user.weekly_goal_minutes} minutes a day.")
    return user


def main():
    setup_logging()
    db_path = DEFAULT_DB_PATH
    init_db(db_path)
    first_run = not is_seeded(db_path)
    if first_run:
        console.print("[dim]Setting up for first use...[/dim]")
    seed_all(db_path)

    show_welcome()
    engine = SessionEngine(db_path)
    try:
        user = sign_in(db_path)
    except TutorError as e:
        console.print(f"[red]Error: {e}[/red]")
        return

    try:
        while True:
            show_menu()
            choice = Prompt.ask("\n[bold]>[/bold]", default="learn").strip().lower()
            try:
                if choice == "learn":
                    cmd_learn(engine, user)
                elif choice == "diagnostic":
                    cmd_diagnostic(db_path, user)
                elif choice == "dashboard":
                    cmd_dashboard(db_path, user)
                elif choice == "summaries":
                    cmd_summaries(db_path, user)
                elif choice == "profile":
                    user = cmd_profile(db_path, user)
                elif choice in ("quit", "exit", "q"):
                    console.print("[dim]See you tomorrow![/dim]")
                    break
                else:
                    console.print("[red]Unknown command. Try again.[/red]")
            except KeyboardInterrupt:
                console.print("\n[dim]Use 'quit' to exit.[/dim]")
            except TutorError as e:
                console.print(f"[red]Error: {e}[/red]")
    finally:
        engine.shutdown()


if __name__ == "__main__":
    main()
