"""
Command-line front end for the teacher's aid session.
Usage: teacheraid <command> [options]   (or: python -m teacheraid <command>)
Example: teacheraid demo esl && teacheraid send "Please sit down" --assist
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from teacheraid.core.errors import TeacherAidError
from teacheraid.core.logging import configure_logging
from teacheraid.core.settings import settings
from teacheraid.data.demo_profiles import DEMO_KINDS
from teacheraid.runtime.controller import SessionController
from teacheraid.runtime.strategy_assist import OptionSet
from teacheraid.schemas.session import Message, SenderRole, VoiceMode


def _print_message(message: Message) -> None:
    print(f"[{message.id}] {message.sender.value}: {message.original_text}")
    print(f"    -> {message.translated_text}")
    if message.cultural_note:
        print(f"    note: {message.cultural_note}")


def _choose_option(controller: SessionController, option_set: OptionSet) -> None:
    for option in option_set.options:
        print(f"{option.id}. {option.strategy}")
        print(f"   {option.english_text}")
        print(f"   -> {option.translated_text}")
        print(f"   why: {option.reasoning}")
    choice = input("Choose an option (blank to cancel): ").strip()
    if not choice:
        controller.cancel_options()
        print("Cancelled; nothing was sent.")
        return
    _print_message(controller.select_option(choice))


def _status(controller: SessionController) -> None:
    session = controller.session
    print(f"Teacher: {session.teacher_name} (voice: {session.preferred_voice.value})")
    engine = controller.audio.local_engine
    print(f"Local voice: {engine.binary} ({'found' if engine.available() else 'not installed'})")
    if not session.students:
        print("No students yet. Run 'add-subject' or 'demo'.")
    for subject in session.students:
        marker = "*" if subject.id == session.current_student_id else " "
        count = len(session.chats.get(subject.id, []))
        print(f"{marker} {subject.id}  {subject.name} ({subject.language}, {subject.age}) - {count} message(s)")


async def _run(args: argparse.Namespace) -> int:
    controller = SessionController.from_settings()
    controller.start()
    try:
        if args.command == "status":
            _status(controller)
        elif args.command == "teacher":
            controller.update_teacher(args.name, args.voice)
            _status(controller)
        elif args.command == "add-subject":
            subject = controller.create_subject(args.name, args.language, args.age, args.sensitivities)
            print(f"Added {subject.name} ({subject.id})")
        elif args.command == "switch":
            controller.switch_subject(args.subject_id)
            _status(controller)
        elif args.command == "delete-subject":
            controller.delete_subject(args.subject_id)
            _status(controller)
        elif args.command == "history":
            for message in controller.session.messages_for(controller.session.current_student_id):
                _print_message(message)
        elif args.command == "send":
            sender = SenderRole.STUDENT if args.student else SenderRole.TEACHER
            result = await controller.send_message(args.text, sender, use_assist=args.assist)
            if isinstance(result, OptionSet):
                _choose_option(controller, result)
            elif isinstance(result, Message):
                _print_message(result)
            else:
                print("Could not generate options; sent as a direct translation instead.")
                _print_message(controller.session.messages_for(controller.session.current_student_id)[-1])
        elif args.command == "speak":
            result = await controller.play_audio(args.message_id)
            print(f"Playback: {result.outcome}")
        elif args.command == "guide":
            guide = await controller.generate_guide(args.subject_id)
            print(guide.guide)
        elif args.command == "demo":
            subject = controller.load_demo(args.kind)
            print(f"Loaded demo student {subject.name} ({subject.id})")
        elif args.command == "export":
            document = controller.export_session()
            if args.path:
                Path(args.path).write_text(document, encoding="utf-8")
                print(f"Exported to {args.path}")
            else:
                print(document)
        elif args.command == "import":
            session = controller.import_session(Path(args.path).read_text(encoding="utf-8"))
            print(f"Backup restored: {len(session.students)} student(s)")
    except TeacherAidError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        await controller.shutdown()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="teacheraid", description="Teacher's aid translation session")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Show teacher settings and students")
    sub.add_parser("history", help="Show the selected student's messages")

    teacher = sub.add_parser("teacher", help="Update teacher settings")
    teacher.add_argument("--name", default=None)
    teacher.add_argument("--voice", choices=[v.value for v in VoiceMode], default=None)

    add = sub.add_parser("add-subject", help="Create a student profile")
    add.add_argument("name")
    add.add_argument("language")
    add.add_argument("--age", type=int, default=6)
    add.add_argument("--sensitivities", default="")

    switch = sub.add_parser("switch", help="Select another student")
    switch.add_argument("subject_id")

    delete = sub.add_parser("delete-subject", help="Delete a student and their history")
    delete.add_argument("subject_id")

    send = sub.add_parser("send", help="Translate a message for the selected student")
    send.add_argument("text")
    send.add_argument("--student", action="store_true", help="The student is speaking")
    send.add_argument("--assist", action="store_true", help="Offer three phrasing strategies first")

    speak = sub.add_parser("speak", help="Read a message aloud")
    speak.add_argument("message_id")

    guide = sub.add_parser("guide", help="Regenerate a student's guide book")
    guide.add_argument("subject_id", nargs="?", default=None)

    demo = sub.add_parser("demo", help="Load a demo student")
    demo.add_argument("kind", choices=list(DEMO_KINDS))

    export = sub.add_parser("export", help="Write the session backup as JSON")
    export.add_argument("path", nargs="?", default=None)

    restore = sub.add_parser("import", help="Restore a session backup")
    restore.add_argument("path")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(settings.log_level)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
