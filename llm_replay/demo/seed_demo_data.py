# llm_replay/demo/seed_demo_data.py

from datetime import datetime, timedelta
from decimal import Decimal

from llm_replay.storage.models import (
    ModelRecord,
    ProviderRecord,
    RequestMetadata,
    RequestRecord,
    RequestStatus,
)
from llm_replay.storage.repository import ModelRegistry, RequestRepository, initialize_schema


def seed(db_path: str = "llm_replay.db", api_key: str = "sk-demo") -> RequestRecord:
    initialize_schema(db_path)

    registry = ModelRegistry(db_path)
    registry.register_provider(ProviderRecord(
        id="prov_openai",
        name="openai",
        provider_type="openai",
        base_url="https://api.openai.com/v1",
        api_key=api_key
    ))
    registry.register_model(ModelRecord(
        id="model_gpt4o",
        model_id="gpt-4o",
        provider_id="prov_openai",
        input_price_per_m=Decimal("2.50"),
        output_price_per_m=Decimal("10.00")
    ))
    registry.register_model(ModelRecord(
        id="model_gpt4o_mini",
        model_id="gpt-4o-mini",
        provider_id="prov_openai",
        input_price_per_m=Decimal("0.15"),
        output_price_per_m=Decimal("0.60")
    ))

    started_at = datetime.now() - timedelta(days=1)
    return RequestRepository(db_path).append(RequestRecord(
        environment_id="env_demo",
        request_id="req_demo_1",
        model_identifier="gpt-4o",
        status=RequestStatus.SUCCESS,
        started_at=started_at,
        completed_at=started_at + timedelta(milliseconds=500),
        duration_ms=500,
        model_id="model_gpt4o",
        provider_id="prov_openai",
        input_tokens=100,
        output_tokens=50,
        input_cost_usd=0.00025,
        output_cost_usd=0.0005,
        total_cost_usd=0.00075,
        metadata=RequestMetadata(
            messages=[{"role": "user", "content": "Summarize the plot of Hamlet in one sentence."}],
            temperature=0.2,
            max_tokens=128,
            response_content="A prince avenges his father's murder and everyone dies."
        )
    ))


if __name__ == "__main__":
    original = seed()
    print(f"Demo data inserted; replay with: llm-replay replay {original.id} --env env_demo")
