from app.core.config import Settings
from app.core.firebase import init_firebase
from app.db.mongo import MongoDocumentStore
from app.db.store import DocumentStore, InMemoryDocumentStore
from app.services.assistant_service import AssistantService
from app.services.auth_service import AuthService
from app.services.data_service import DataService
from app.services.generative_service import GenerativeService
from app.services.history_service import HistoryService
from app.services.payments_service import PaymentsService
from app.services.transcription_service import TranscriptionService
from dataclasses import dataclass
from google import genai
from openai import AsyncOpenAI


@dataclass
class Services:
    """Every provider client and service, built once per process and kept on ``app.state``."""
    store: DocumentStore
    auth: AuthService
    data: DataService
    generative: GenerativeService
    assistant: AssistantService
    transcription: TranscriptionService
    payments: PaymentsService
    history: HistoryService


def build_services(settings: Settings) -> Services:
    if settings.USE_IN_MEMORY_BACKENDS:
        store: DocumentStore = InMemoryDocumentStore()
    else:
        store = MongoDocumentStore(settings.MONGO_URI, settings.MONGO_DB_NAME)

    genai_client = genai.Client(api_key=settings.AI_API_KEY) if settings.AI_API_KEY else None
    openai_client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY) if settings.OPENAI_API_KEY else None

    auth = AuthService(store, enabled=init_firebase(settings))
    data = DataService(store)
    assistant = AssistantService(
        openai_client,
        settings.OPENAI_ASSISTANT_ID,
        poll_interval=settings.ASSISTANT_POLL_INTERVAL_SECONDS,
        max_poll_interval=settings.ASSISTANT_POLL_MAX_INTERVAL_SECONDS,
        run_timeout=settings.ASSISTANT_RUN_TIMEOUT_SECONDS,
    )

    return Services(
        store=store,
        auth=auth,
        data=data,
        generative=GenerativeService(genai_client, settings.AI_MODEL_NAME, data),
        assistant=assistant,
        transcription=TranscriptionService(openai_client, settings.TRANSCRIPTION_MODEL),
        payments=PaymentsService(
            store,
            auth,
            api_key=settings.STRIPE_SECRET_KEY,
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
            price_id=settings.STRIPE_SUBSCRIPTION_PRICE_ID,
            trial_period_days=settings.STRIPE_TRIAL_PERIOD_DAYS,
            portal_configuration_id=settings.STRIPE_PORTAL_CONFIGURATION_ID,
        ),
        history=HistoryService(store, assistant),
    )
