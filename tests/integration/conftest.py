"""
Fixtures for workflow integration tests.
"""

from __future__ import annotations

import pytest
import yaml

from llmfanout.core.workflow import FanoutWorkflow


@pytest.fixture
def models_yaml(tmp_path, app_config) -> str:
    """The shared app_config written to a models file."""
    path = tmp_path / "models.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "models": [m.to_dict() for m in app_config.models],
                "groups": {
                    name: {
                        "systemPrompt": group.system_prompt.to_dict(),
                        "models": [m.to_dict() for m in group.models],
                    }
                    for name, group in app_config.groups.items()
                },
            },
            sort_keys=False,
        )
    )
    return str(path)


@pytest.fixture
def workflow(settings, fake_registry, all_credentials) -> FanoutWorkflow:
    return FanoutWorkflow(settings=settings, registry=fake_registry, credentials=all_credentials)
