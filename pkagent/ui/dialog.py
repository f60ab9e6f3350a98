"""tkinter prompt surface and the presentation thread that drives it."""
from __future__ import annotations

import logging
import threading
from typing import Callable

from pkagent.core.events import ChannelClosed, PromptEventChannel
from pkagent.ui.presenter import PromptPresenter

logger = logging.getLogger(__name__)

POLL_INTERVAL_MS = 50


class PasswordDialog:
    """A small always-on-top window with a masked entry."""

    def __init__(self, root) -> None:
        import tkinter as tk

        self._on_submit: Callable[[str], None] | None = None
        self._on_cancel: Callable[[], None] | None = None

        self.window = tk.Toplevel(root)
        self.window.title("Authentication Required")
        self.window.geometry("420x160")
        self.window.resizable(False, False)
        self.window.protocol("WM_DELETE_WINDOW", self._cancel)
        try:
            self.window.attributes("-topmost", True)
        except tk.TclError:
            pass

        self.prompt = tk.StringVar(value="Password:")
        tk.Label(self.window, textvariable=self.prompt, font=("Helvetica", 12, "bold")).pack(
            anchor="w", padx=14, pady=(12, 4)
        )
        self.entry = tk.Entry(self.window, show="*", font=("Helvetica", 14))
        self.entry.pack(fill="x", padx=14)

        self.status = tk.StringVar(value="")
        tk.Label(self.window, textvariable=self.status, fg="gray").pack(
            anchor="w", padx=14, pady=(6, 4)
        )

        row = tk.Frame(self.window)
        row.pack(fill="x", padx=14, pady=(0, 10))
        self.submit_button = tk.Button(row, text="Authenticate", command=self._submit)
        self.submit_button.pack(side="right")
        tk.Button(row, text="Cancel", command=self._cancel).pack(side="right", padx=(0, 8))

        self.entry.bind("<Return>", lambda e: self._submit())
        self.entry.bind("<Escape>", lambda e: self._cancel())

    def ask_password(
        self,
        prompt: str,
        on_submit: Callable[[str], None],
        on_cancel: Callable[[], None],
    ) -> None:
        self._on_submit = on_submit
        self._on_cancel = on_cancel
        self.prompt.set(prompt)
        self.status.set("")
        self.entry.configure(state="normal")
        self.submit_button.configure(state="normal")
        self.entry.delete(0, "end")
        self.window.deiconify()
        self.window.lift()
        self.entry.focus_force()

    def show_fingerprint(self) -> None:
        self.status.set("Place your finger on the fingerprint reader")
        self.window.deiconify()

    def destroy(self) -> None:
        self._on_submit = self._on_cancel = None
        self.window.destroy()

    def _submit(self) -> None:
        if self._on_submit is None:
            return
        value = self.entry.get()
        self.entry.delete(0, "end")
        self.entry.configure(state="disabled")
        self.submit_button.configure(state="disabled")
        self.status.set("Authenticating…")
        callback, self._on_submit = self._on_submit, None
        callback(value)

    def _cancel(self) -> None:
        callback = self._on_cancel
        self._on_submit = self._on_cancel = None
        if callback is not None:
            callback()
        else:
            self.window.withdraw()


class TkPresentation:
    """Runs the tkinter loop in its own thread, fed by a PromptEventChannel.

    The thread ends once the channel is closed; *on_exit* runs in the
    presentation thread when it does, however it ended.
    """

    def __init__(
        self,
        channel: PromptEventChannel,
        on_exit: Callable[[], None] | None = None,
    ) -> None:
        self._channel = channel
        self._on_exit = on_exit
        self._thread: threading.Thread | None = None
        self._root = None
        self._presenter: PromptPresenter | None = None

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self._run, name="pkagent-presentation", daemon=True
        )
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self) -> None:
        try:
            import tkinter as tk

            self._root = tk.Tk()
            self._root.withdraw()
            self._presenter = PromptPresenter(lambda: PasswordDialog(self._root))
            self._root.after(POLL_INTERVAL_MS, self._poll)
            logger.info("Presentation loop started")
            self._root.mainloop()
        except Exception:
            logger.exception("Presentation loop failed")
        finally:
            logger.info("Presentation loop stopped")
            if self._on_exit is not None:
                self._on_exit()

    def _poll(self) -> None:
        assert self._root is not None and self._presenter is not None
        try:
            while (event := self._channel.try_receive()) is not None:
                self._presenter.handle(event)
        except ChannelClosed:
            self._presenter.close()
            self._root.destroy()
            return
        self._root.after(POLL_INTERVAL_MS, self._poll)
