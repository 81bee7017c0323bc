"""Tests for the kind registry, redaction and postrenderers."""

import pytest

from harbormaster.db.models import CloudProvider, Cluster
from harbormaster.errors import RequestRejectedError
from harbormaster.infra import kinds
from harbormaster.infra.kinds import (
    InfraKindHandler,
    LastApplied,
    get_kind_handler,
    register_kind,
    registered_kinds,
)
from harbormaster.infra.postrenderers import rds_postrenderer


def _cluster(**overrides) -> Cluster:
    fields = {
        "id": 1,
        "project_id": 4,
        "name": "prod",
        "aws_integration_id": 1,
        "aws_region": "us-east-2",
    }
    fields.update(overrides)
    return Cluster(**fields)


class TestRegistry:
    def test_builtin_kinds_registered(self):
        assert registered_kinds() == ["docr", "doks", "ecr", "eks", "gcr", "gke", "rds"]

    def test_unknown_kind(self):
        assert get_kind_handler("aks") is None

    @pytest.mark.parametrize(
        "kind,provider",
        [
            ("ecr", CloudProvider.AWS),
            ("eks", CloudProvider.AWS),
            ("rds", CloudProvider.AWS),
            ("gcr", CloudProvider.GCP),
            ("gke", CloudProvider.GCP),
            ("docr", CloudProvider.DO),
            ("doks", CloudProvider.DO),
        ],
    )
    def test_provider_per_kind(self, kind, provider):
        assert get_kind_handler(kind).provider == provider

    def test_register_new_kind(self, monkeypatch):
        monkeypatch.setattr(kinds, "_registry", dict(kinds._registry))

        class AKSLastApplied(LastApplied):
            aks_name: str = ""

        register_kind(
            InfraKindHandler(
                kind="aks",
                provider=CloudProvider.AWS,
                last_applied_model=AKSLastApplied,
                redact=lambda v: {"aks_name": v.aks_name},
            )
        )

        handler = get_kind_handler("aks")
        assert handler is not None
        assert handler.redacted({"aks_name": "blue", "token": "s3cret"}) == {"aks_name": "blue"}


class TestRedaction:
    def test_eks_keeps_name_and_machine_type(self):
        values = {"eks_name": "prod", "machine_type": "t3.medium", "aws_secret": "x"}
        assert get_kind_handler("eks").redacted(values) == {
            "eks_name": "prod",
            "machine_type": "t3.medium",
        }

    def test_doks_renames_cluster_name(self):
        values = {"doks_name": "blue", "do_region": "nyc1", "do_token": "x"}
        assert get_kind_handler("doks").redacted(values) == {
            "cluster_name": "blue",
            "do_region": "nyc1",
        }

    def test_rds_renders_cluster_id_as_string(self):
        values = {"cluster_id": 1, "aws_region": "us-east-2", "db_name": "app", "db_passwd": "x"}
        assert get_kind_handler("rds").redacted(values) == {
            "cluster_id": "1",
            "aws_region": "us-east-2",
            "db_name": "app",
        }

    def test_gcr_exposes_nothing(self):
        assert get_kind_handler("gcr").redacted({"gcp_key": "x"}) == {}

    def test_missing_fields_default_to_empty(self):
        assert get_kind_handler("ecr").redacted({}) == {"ecr_name": ""}

    def test_schema_mismatch_yields_empty(self):
        assert get_kind_handler("rds").redacted({"cluster_id": "not-a-number"}) == {}


class TestRdsPostrenderer:
    def test_injects_cluster_fields(self):
        rendered = rds_postrenderer(
            _cluster(), {"db_name": "app", "db_user": "admin", "db_passwd": "pw"}
        )

        assert rendered == {
            "db_name": "app",
            "db_user": "admin",
            "db_passwd": "pw",
            "cluster_id": 1,
            "cluster_name": "prod",
            "aws_region": "us-east-2",
        }

    def test_supplied_region_wins(self):
        rendered = rds_postrenderer(
            _cluster(),
            {"db_name": "app", "db_user": "admin", "db_passwd": "pw", "aws_region": "eu-west-1"},
        )
        assert rendered["aws_region"] == "eu-west-1"

    def test_does_not_mutate_input(self):
        values = {"db_name": "app", "db_user": "admin", "db_passwd": "pw"}
        rds_postrenderer(_cluster(), values)
        assert "cluster_id" not in values

    def test_requires_cluster(self):
        with pytest.raises(RequestRejectedError):
            rds_postrenderer(None, {"db_name": "app", "db_user": "admin", "db_passwd": "pw"})

    def test_requires_aws_backed_cluster(self):
        with pytest.raises(RequestRejectedError):
            rds_postrenderer(
                _cluster(aws_integration_id=0),
                {"db_name": "app", "db_user": "admin", "db_passwd": "pw"},
            )

    def test_missing_required_fields(self):
        with pytest.raises(RequestRejectedError) as exc_info:
            rds_postrenderer(_cluster(), {"db_name": "app"})

        assert "db_user" in exc_info.value.message
        assert "db_passwd" in exc_info.value.message

    def test_no_region_anywhere(self):
        with pytest.raises(RequestRejectedError):
            rds_postrenderer(
                _cluster(aws_region=""),
                {"db_name": "app", "db_user": "admin", "db_passwd": "pw"},
            )
