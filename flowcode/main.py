from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Callable, List, Optional

from flowcode.adapters.gemini_adapter import GeminiAdapter
from flowcode.adapters.llm_base import LLMAdapter
from flowcode.adapters.mock_adapter import MockAdapter
from flowcode.adapters.openai_adapter import OpenAIAdapter
from flowcode.artifacts.plan_writer import PlanVersioner
from flowcode.config import ConfigStore, FlowcodeConfig, load_environment
from flowcode.errors import FlowcodeError, StorageError
from flowcode.models import Role, Session
from flowcode.pipeline_conversation import ConversationPipeline
from flowcode.session_store import SessionStore
from flowcode.utils.time import format_local

DEFAULT_PROJECT_NAME = "New Project"

HELP_TEXT = """
Commands:
  /help     - Show this help message
  /new      - Start a new conversation
  /sessions - List all sessions
  /resume   - Resume a previous session
  /config   - Configure API key
  /folder   - Configure plan folder name
  /export   - Show generated plan files
  /exit     - Exit FlowCode
"""


def _echo_chunk(chunk: str) -> None:
    sys.stdout.write(chunk)
    sys.stdout.flush()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="FlowCode - AI software planner")
    parser.add_argument("--mode", choices=["mock", "live"], default="live")
    parser.add_argument("--provider", choices=["gemini", "openai"], default="gemini")
    parser.add_argument("--home", help="Directory holding config.json and sessions/")
    parser.add_argument("--project-path", help="Project root plans are written under")
    return parser


def build_adapter(mode: str, provider: str, config: FlowcodeConfig) -> LLMAdapter:
    if mode == "mock":
        return MockAdapter()
    if provider == "openai":
        return OpenAIAdapter()
    return GeminiAdapter(api_key=config.credential)


class FlowcodeShell:
    def __init__(
        self,
        config_store: ConfigStore,
        config: FlowcodeConfig,
        store: SessionStore,
        pipeline: ConversationPipeline,
        project_path: Path,
        adapter_factory: Callable[[FlowcodeConfig], LLMAdapter] | None = None,
        input_fn: Callable[[str], str] = input,
        output: Callable[[str], None] = print,
        echo: Callable[[str], None] | None = None,
    ) -> None:
        self.config_store = config_store
        self.config = config
        self.store = store
        self.pipeline = pipeline
        self.versioner = pipeline.versioner
        self.project_path = project_path
        self.adapter_factory = adapter_factory
        self.input_fn = input_fn
        self.output = output
        self.echo = echo or _echo_chunk
        self.session: Optional[Session] = None

    def start(self) -> Session:
        sessions = self.store.list_all()
        if sessions:
            self.output(f"Found {len(sessions)} previous session(s).")
            answer = self.input_fn("Resume last session? (y/n): ")
            if answer.strip().lower() == "y":
                self.session = sessions[0]
                plan = f"v{self.session.plan_version}" if self.session.plan_generated else "Not generated"
                self.output(f"\nResumed: {self.session.project_name}")
                self.output(f"   Messages: {len(self.session.messages)}")
                self.output(f"   Plan: {plan}\n")
                self._print_history()
                return self.session

        name = self.input_fn("Project name: ").strip()
        self.session = self._create_session(name)
        return self.session

    def run(self) -> None:
        if self.session is None:
            self.start()
        self.output("Start chatting! Type /help for commands.\n")
        while True:
            try:
                line = self.input_fn("> ")
            except EOFError:
                break
            trimmed = line.strip()
            if not trimmed:
                continue
            if trimmed.startswith("/"):
                if not self.handle_command(trimmed):
                    break
                continue
            self.handle_message(trimmed)
        self.output("\nGoodbye!\n")

    def handle_command(self, command: str) -> bool:
        command = command.strip().lower()
        if command in ("/exit", "/quit"):
            return False
        handlers = {
            "/help": self._cmd_help,
            "/new": self._cmd_new,
            "/sessions": self._cmd_sessions,
            "/resume": self._cmd_resume,
            "/config": self._cmd_config,
            "/folder": self._cmd_folder,
            "/export": self._cmd_export,
        }
        handler = handlers.get(command)
        if handler is None:
            self.output(f"Unknown command: {command}. Type /help for help.\n")
            return True
        try:
            handler()
        except FlowcodeError as exc:
            self.output(f"Error: {exc}\n")
        return True

    def handle_message(self, text: str) -> None:
        if self.session is None:
            raise RuntimeError("No active session.")
        self.output("\nAI: ")
        try:
            result = self.pipeline.run_turn(
                self.session.id,
                text,
                on_chunk=self.echo,
            )
        except FlowcodeError as exc:
            self.output(f"\nError: {exc}\n")
            try:
                refreshed = self.store.get(self.session.id)
            except StorageError as reload_exc:
                self.output(f"Error: {reload_exc}\n")
                return
            if refreshed is not None:
                self.session = refreshed
            return
        self.output("\n")
        self.session = result.session
        if result.plan_generated:
            self.output("Plan generated successfully!")
            self.output(f"   Location: {result.plan_dir}/\n")

    def _create_session(self, name: str) -> Session:
        session = self.store.create(str(self.project_path), name or DEFAULT_PROJECT_NAME)
        self.output(f"\nStarted new session: {session.project_name}\n")
        return session

    def _print_history(self) -> None:
        if self.session is None or not self.session.messages:
            return
        self.output("\n--- Previous conversation ---\n")
        for message in self.session.messages:
            prefix = "You" if message.role == Role.USER else "AI"
            self.output(f"{prefix}: {message.content}\n")
        self.output("--- End of history ---\n")

    def _cmd_help(self) -> None:
        self.output(HELP_TEXT)

    def _cmd_new(self) -> None:
        name = self.input_fn("New project name: ").strip()
        self.session = self._create_session(name)

    def _cmd_sessions(self) -> None:
        sessions = self.store.list_all()
        if not sessions:
            self.output("No sessions found.")
            return
        self.output("\nAll sessions:")
        for index, session in enumerate(sessions, start=1):
            self.output(f"  {index}. {session.project_name} - {format_local(session.created_at)}")

    def _cmd_resume(self) -> None:
        sessions = self.store.list_all()
        if not sessions:
            self.output("No previous sessions found.")
            return
        self.output("\nPrevious sessions:")
        for index, session in enumerate(sessions, start=1):
            self.output(
                f"  {index}. {session.project_name} - {format_local(session.created_at)} "
                f"({len(session.messages)} messages)"
            )
        answer = self.input_fn("\nSelect session number (or 0 to cancel): ").strip()
        try:
            index = int(answer) - 1
        except ValueError:
            return
        if 0 <= index < len(sessions):
            self.session = sessions[index]
            self.output(f"\nResumed: {self.session.project_name}\n")

    def _cmd_config(self) -> None:
        new_key = self.input_fn("Enter new API key: ").strip()
        if not new_key:
            return
        self.config.api_key = new_key
        self.config_store.save(self.config)
        if self.adapter_factory is not None:
            self.pipeline.adapter = self.adapter_factory(self.config)
        self.output("API key updated!\n")

    def _cmd_folder(self) -> None:
        new_folder = self.input_fn(
            f"Current folder: {self.config.plan_folder}. Enter new folder name: "
        ).strip()
        if not new_folder:
            self.output("Folder name unchanged.\n")
            return
        self.config.plan_folder_name = new_folder
        self.config_store.save(self.config)
        self.output(f"Plan folder updated to: {new_folder}\n")

    def _cmd_export(self) -> None:
        if self.session is None or not self.session.plan_generated:
            self.output(
                "\nNo plan generated yet for this session. Chat with AI to generate a plan first.\n"
            )
            return
        project_path = self.session.project_path
        version = self.session.plan_version or 1
        self.output("\nPlan files location:")
        self.output(f"   Versioned: {self.versioner.version_dir(project_path, version)}/")
        self.output(f"   Current: {self.versioner.plan_root(project_path)}/")
        self.output("\nFiles generated:")
        for item in self.versioner.describe(project_path, version):
            if item.exists:
                self.output(f"   [x] {item.section}.md ({item.size / 1024:.1f} KB)")
            else:
                self.output(f"   [ ] {item.section}.md (not found)")
        self.output("")


def _ensure_api_key(
    config_store: ConfigStore,
    config: FlowcodeConfig,
    input_fn: Callable[[str], str],
) -> None:
    if config.credential:
        return
    print("\nNo API key configured.\n")
    config.api_key = input_fn("Enter your Gemini API key: ").strip()
    folder = input_fn(f"Plan folder name (default: {config.plan_folder}): ").strip()
    if folder:
        config.plan_folder_name = folder
    config_store.save(config)
    print("Configuration saved!\n")


def main(argv: List[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    load_environment(Path.cwd())

    print("\n" + "=" * 50)
    print("  FlowCode - AI Software Planner")
    print("  Chat with AI to plan your next project")
    print("=" * 50 + "\n")

    config_store = ConfigStore(Path(args.home).expanduser() if args.home else None)
    project_path = Path(args.project_path).resolve() if args.project_path else Path.cwd()

    try:
        config = config_store.load()
        if args.mode == "live" and args.provider == "gemini":
            _ensure_api_key(config_store, config, input)

        def adapter_factory(current: FlowcodeConfig) -> LLMAdapter:
            return build_adapter(args.mode, args.provider, current)

        store = SessionStore(config_store.sessions_dir)
        versioner = PlanVersioner(config, reporter=lambda line: print(f"   + {line}"))
        pipeline = ConversationPipeline(store, versioner, adapter_factory(config))
        shell = FlowcodeShell(
            config_store,
            config,
            store,
            pipeline,
            project_path,
            adapter_factory=adapter_factory,
            input_fn=input,
        )
        shell.start()
        shell.run()
    except RuntimeError as exc:
        print(f"Fatal error: {exc}")
        return 1
    except KeyboardInterrupt:
        print("\nGoodbye!\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
