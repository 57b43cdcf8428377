"""genui - streaming generative UI for the terminal."""

__version__ = "0.1.0"


def chat(
    endpoint: str | None = None,
    *,
    system_prompt: str | None = None,
    context: dict | None = None,
    headers: dict[str, str] | None = None,
) -> None:
    """Launch the genui TUI.

    Every question you type is sent to the generation endpoint; the
    streamed answer is parsed into a UI specification and rendered live.

    Usage::

        >>> from genui import chat
        >>> chat()                                   # settings / env endpoint
        >>> chat("http://localhost:3001/api/v1/c1/generate")
        >>> chat(context={"availableRecords": [...]})
    """
    from genui.app import GenUIApp
    from genui.assistant import Assistant
    from genui.context import compose_system_prompt
    from genui.settings import get_settings, resolve_endpoint, resolve_system_prompt
    from genui.transport import StreamTransport
    from genui.wire import WireLog

    settings = get_settings()

    # Precedence: explicit arg > env > persisted setting > default
    url = resolve_endpoint(endpoint, settings)
    prompt = compose_system_prompt(resolve_system_prompt(system_prompt, settings), context)

    transport = StreamTransport(url, headers=headers, wire_log=WireLog())
    assistant = Assistant(transport, context=context, system_prompt=prompt)

    app = GenUIApp(assistant, settings=settings)
    app.run()
