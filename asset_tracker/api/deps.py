from fastapi import Request


def get_mailer(request: Request):
    return request.app.state.mailer


def get_code_generator(request: Request):
    return request.app.state.code_generator


def get_report_renderer(request: Request):
    return request.app.state.report_renderer
