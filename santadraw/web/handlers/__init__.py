from santadraw.web.handlers import admin, draws, participants, sessions, sharing, smtp

route_tables = [
    sessions.routes,
    participants.routes,
    draws.routes,
    sharing.routes,
    smtp.routes,
    admin.routes,
]
