# calendar_bridge/client/cli.py
import argparse
import datetime
import logging
import os
import sys
import webbrowser
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from .api import DEFAULT_API_URL, ApiError, CalendarApiClient, SessionExpiredError, parse_auth_redirect
from .poller import REFRESH_INTERVAL_SECONDS, EventPoller
from .session_store import SessionStore

logger = logging.getLogger(__name__)


def format_event(event: Dict[str, Any]) -> str:
    start = event.get("start", {})
    when = start.get("dateTime") or start.get("date") or "?"
    return f"{when:<28} {event.get('summary', '(no title)'):<40} {event.get('id', '')}"


def print_events(events: List[Dict[str, Any]]) -> None:
    if not events:
        print("No upcoming events.")
        return
    for event in events:
        print(format_event(event))


def event_window(date: str, time: str, duration_minutes: int = 60) -> tuple[str, str]:
    """Local date + time into UTC ISO start/end strings, one hour long by default."""
    start = datetime.datetime.fromisoformat(f"{date}T{time}").astimezone(datetime.timezone.utc)
    end = start + datetime.timedelta(minutes=duration_minutes)
    return start.isoformat(), end.isoformat()


class CalendarCli:
    def __init__(self, client: CalendarApiClient, store: SessionStore):
        self.client = client
        self.store = store

    def _require_email(self) -> str:
        email = self.store.load_email()
        if not email:
            raise ApiError(401, "Not signed in. Run 'signin' first.")
        return email

    def _sign_out_locally(self) -> None:
        self.store.clear()
        print("Session expired. Please sign in again.")

    def signin(self, open_browser: bool = True) -> None:
        url = self.client.get_auth_url()
        print("Open this URL to sign in with Google:")
        print(url)
        if open_browser:
            webbrowser.open(url)
        print("Then run: complete '<the URL you were redirected to>'")

    def complete(self, redirect_url: str) -> None:
        email = parse_auth_redirect(redirect_url)
        self.store.save_email(email)
        print(f"Signed in as {email}")
        print_events(self.client.list_events(email))

    def status(self) -> None:
        email = self.store.load_email()
        if email and self.client.check(email):
            print(f"Signed in as {email}")
        else:
            if email:
                self.store.clear()
            print("Not signed in.")

    def signout(self) -> None:
        email = self.store.load_email()
        if email:
            try:
                self.client.logout(email)
            except ApiError as e:
                logger.warning(f"Backend logout failed: {e}")
        self.store.clear()
        print("Signed out.")

    def events(self) -> None:
        print_events(self.client.list_events(self._require_email()))

    def create(self, name: str, date: str, time: str, duration: int,
               description: Optional[str], attendees: Optional[List[str]], time_zone: Optional[str]) -> None:
        email = self._require_email()
        start, end = event_window(date, time, duration)
        event = self.client.create_event(email, name, start, end, description, attendees, time_zone)
        print(f"Created event {event.get('id')}")
        print_events(self.client.list_events(email))

    def delete(self, event_id: str) -> None:
        email = self._require_email()
        self.client.delete_event(email, event_id)
        print(f"Deleted event {event_id}")

    def watch(self, interval: float = REFRESH_INTERVAL_SECONDS) -> None:
        email = self._require_email()

        def on_events(events):
            print(f"--- {datetime.datetime.now():%H:%M:%S} ---")
            print_events(events)

        def on_error(error: Exception) -> bool:
            if isinstance(error, SessionExpiredError):
                self._sign_out_locally()
                return False
            return True

        poller = EventPoller(lambda: self.client.list_events(email), on_events, on_error, interval)
        poller.start()
        try:
            poller.wait()
        except KeyboardInterrupt:
            pass
        finally:
            poller.stop()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="calendar-bridge", description="Google Calendar client")
    parser.add_argument("--api-url", default=os.getenv("CALENDAR_API_URL", DEFAULT_API_URL))
    parser.add_argument("--session-file", default=None)
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    signin = sub.add_parser("signin", help="Start Google sign-in")
    signin.add_argument("--no-browser", action="store_true")
    complete = sub.add_parser("complete", help="Finish sign-in with the redirect URL")
    complete.add_argument("redirect_url")
    sub.add_parser("status", help="Show whether the stored session is usable")
    sub.add_parser("signout", help="Sign out and forget the session")
    sub.add_parser("events", help="List upcoming events")

    create = sub.add_parser("create", help="Create an event")
    create.add_argument("--name", required=True)
    create.add_argument("--date", required=True, help="YYYY-MM-DD")
    create.add_argument("--time", required=True, help="HH:MM (local time)")
    create.add_argument("--duration", type=int, default=60, help="Minutes")
    create.add_argument("--description")
    create.add_argument("--attendee", action="append", dest="attendees")
    create.add_argument("--time-zone")

    delete = sub.add_parser("delete", help="Delete an event")
    delete.add_argument("event_id")

    watch = sub.add_parser("watch", help="Keep the event list refreshed")
    watch.add_argument("--interval", type=float, default=REFRESH_INTERVAL_SECONDS)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    cli = CalendarCli(CalendarApiClient(args.api_url), SessionStore(args.session_file))
    try:
        if args.command == "signin":
            cli.signin(open_browser=not args.no_browser)
        elif args.command == "complete":
            cli.complete(args.redirect_url)
        elif args.command == "status":
            cli.status()
        elif args.command == "signout":
            cli.signout()
        elif args.command == "events":
            cli.events()
        elif args.command == "create":
            cli.create(args.name, args.date, args.time, args.duration,
                       args.description, args.attendees, args.time_zone)
        elif args.command == "delete":
            cli.delete(args.event_id)
        elif args.command == "watch":
            cli.watch(args.interval)
    except SessionExpiredError:
        cli._sign_out_locally()
        return 1
    except ApiError as e:
        print(f"Error: {e.detail}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
