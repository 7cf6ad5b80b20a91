"""Run a text-only mock interview in the terminal."""

import argparse
import asyncio
import logging

from mockloop.config.settings import get_settings
from mockloop.core.provider_router import ProviderRouter
from mockloop.core.sessions import SessionRegistry
from mockloop.models.interview import (
    CompanyTarget,
    Difficulty,
    InterviewConfig,
    InterviewType,
    Turn,
    TurnRole,
)

HELP_TEXT = """Commands:
  /code      paste code, finish with a line containing only /done
  /status    time left and current score
  /end       finish the interview now
Anything else is sent as your answer."""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mockloop", description=__doc__)
    parser.add_argument("--type", dest="interview_type", default="dsa",
                        choices=[t.value for t in InterviewType])
    parser.add_argument("--role", dest="custom_role", default="",
                        help="Role name for custom interviews")
    parser.add_argument("--difficulty", default="intermediate",
                        choices=[d.value for d in Difficulty])
    parser.add_argument("--company", dest="company_target", default="product",
                        choices=[c.value for c in CompanyTarget])
    parser.add_argument("--duration", dest="duration_minutes", type=int, default=None,
                        help="Session length in minutes")
    parser.add_argument("--stack", dest="tech_stack", default="javascript",
                        help="Language for coding questions")
    parser.add_argument("--candidate", dest="candidate_id", default="anonymous",
                        help="Key for the weak-area history")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logs")
    return parser


def print_turn(_session_id: str, turn: Turn) -> None:
    # The candidate already sees what they typed
    if turn.role == TurnRole.AI:
        print(f"\nInterviewer: {turn.text}\n")


def print_banner(_session_id: str, message: str) -> None:
    print(f"[!] {message}")


async def read_line(prompt: str = "> ") -> str:
    return await asyncio.to_thread(input, prompt)


async def read_code() -> str:
    lines = []
    while True:
        line = await read_line("")
        if line.strip() == "/done":
            return "\n".join(lines)
        lines.append(line)


async def run(config: InterviewConfig) -> int:
    settings = get_settings()
    router = ProviderRouter.from_settings(settings)
    await router.init()
    registry = SessionRegistry(router=router, settings=settings)

    def configure(controller):
        controller.on_turn(print_turn)
        controller.on_banner(print_banner)

    try:
        handle = await registry.start_session(config, configure=configure)
        controller = handle.controller
        await handle.start_task
        print(HELP_TEXT)

        while not controller.ended:
            try:
                line = (await read_line()).strip()
            except EOFError:
                break

            if not line:
                continue
            if line == "/end":
                break
            if line == "/status":
                state = controller.state
                print(
                    f"Question {state.question_number} | "
                    f"{state.time_remaining // 60}:{state.time_remaining % 60:02d} left | "
                    f"score {state.overall_score}"
                )
                continue
            if line == "/code":
                code = await read_code()
                await controller.submit_code(code, config.tech_stack)
                continue

            await controller.submit_answer(line)

        result = await registry.end_session(handle)
        print("=" * 60)
        print(f"Overall score: {result.overall_score}/100 ({result.end_reason.value})")
        print(f"Questions answered: {result.questions_attempted}")
        for problem in result.problems:
            status = "solved" if problem.solved else "unsolved"
            print(f"  - {problem.title} [{problem.difficulty}] {status}, score {problem.score}")
        print("Strengths: " + "; ".join(result.strengths))
        print("Work on: " + "; ".join(result.weak_points))
        print("Study next:")
        for suggestion in result.suggestions:
            print(f"  - {suggestion}")

        if controller.persist_task is not None:
            await controller.persist_task
        return 0
    finally:
        await registry.close()
        await router.close()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config = InterviewConfig(
        candidate_id=args.candidate_id,
        interview_type=InterviewType(args.interview_type),
        custom_role=args.custom_role,
        difficulty=Difficulty(args.difficulty),
        company_target=CompanyTarget(args.company_target),
        duration_minutes=args.duration_minutes or settings.default_duration_minutes,
        tech_stack=args.tech_stack,
        narration_enabled=False,
    )

    try:
        return asyncio.run(run(config))
    except KeyboardInterrupt:
        print("\nInterview aborted.")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
