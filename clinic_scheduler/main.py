import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from clinic_scheduler.core import config
from clinic_scheduler.routes import appointment_routes, availability_routes

app = FastAPI(title='Clinic Scheduler API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def check_configuration() -> None:
    logging.basicConfig(level=config.LOG_LEVEL.upper())
    try:
        config.validate_runtime_config()
    except RuntimeError:
        logger.exception('Invalid runtime configuration. Check CLINIC_API_BASE_URL, CLINIC_TIMEZONE and JWT_SECRET_KEY.')
        raise
    logger.info('Scheduling against %s (clinic timezone %s)', config.CLINIC_API_BASE_URL, config.CLINIC_TIMEZONE)


@app.get('/')
def root():
    return {'status': 'Clinic Scheduler API Running'}


app.include_router(availability_routes.router, prefix='/availability')
app.include_router(appointment_routes.router, prefix='/appointments')
