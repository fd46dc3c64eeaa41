from fastapi import Request

from ecu_console.services.console import DiagnosticConsole


def get_console(request: Request) -> DiagnosticConsole:
    return request.app.state.console
