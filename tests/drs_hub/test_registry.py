"""Provider resolution from parsed DRS URIs."""

from __future__ import annotations

import pytest

from DrsHub.config import DeploymentEnv, DrsHubSettings
from DrsHub.errors import RequestError, RetiredNamespaceError
from DrsHub.resolvers.profiles import AccessMethodType, AccessUrlAuth, BondProvider
from DrsHub.resolvers.registry import (
    DATAGUIDS_MOVED_MESSAGE,
    find_rule,
    get_rules,
    register_rule,
    resolve_provider,
)


@pytest.fixture
def settings():
    return DrsHubSettings(env=DeploymentEnv.DEV)


class TestRuleOrder:
    """Rules are evaluated in registration order."""

    def test_registered_order(self):
        names = [rule.name for rule in get_rules()]
        assert names == [
            "bio_data_catalyst",
            "the_anvil",
            "terra_data_repo",
            "crdc",
            "kids_first",
            "passport_test",
        ]

    def test_duplicate_rule_name_rejected(self):
        with pytest.raises(ValueError, match="already registered"):
            register_rule("crdc", lambda settings: None)(lambda host, parts, hosts: False)

    def test_find_rule(self):
        assert find_rule("kids_first") is not None
        assert find_rule("nope") is None


class TestResolveProvider:
    """URI to provider profile."""

    @pytest.mark.parametrize(
        ("url", "name", "bond_provider"),
        [
            ("drs://dg.4503:abc", "BioData Catalyst (BDC)", BondProvider.FENCE),
            ("drs://dg.712C:abc", "BioData Catalyst (BDC)", BondProvider.FENCE),
            ("drs://dg.ANV0:abc", "NHGRI Analysis Visualization and Informatics Lab-space (The AnVIL)", BondProvider.ANVIL),
            ("drs://drs.anv0:v2_abc", "Terra Data Repo (TDR)", None),
            ("drs://data.terra.bio/v1_abc", "Terra Data Repo (TDR)", None),
            ("drs://dg.4DFC:abc", "NCI Cancer Research / Proteomics Data Commons (CRDC / PDC)", BondProvider.DCF_FENCE),
            ("drs://dg.F82A1A:abc", "Gabriella Miller Kids First DRC", BondProvider.KIDS_FIRST),
            ("drs://data.kidsfirstdrc.org/abc", "Gabriella Miller Kids First DRC", BondProvider.KIDS_FIRST),
            ("drs://dg.TEST0:abc", "Passport Test Provider", BondProvider.FENCE),
            ("drs://wb-mock-drs-dev.storage.googleapis.com/abc", "BioData Catalyst (BDC)", BondProvider.FENCE),
        ],
    )
    def test_known_providers(self, settings, url, name, bond_provider):
        _, profile = resolve_provider(url, settings)
        assert profile.name == name
        assert profile.bond_provider is bond_provider

    def test_host_matching_is_case_insensitive(self, settings):
        _, profile = resolve_provider("drs://Gen3.TheAnVIL.io/abc", settings)
        assert profile.bond_provider is BondProvider.ANVIL

    def test_terra_data_repo_profile(self, settings):
        """TDR forwards the caller's token and localizes by alias."""
        _, profile = resolve_provider("drs://jade.datarepo-dev.broadinstitute.org/v1_abc", settings)
        assert profile.metadata_auth is True
        assert profile.uses_aliases_for_localization_path is True
        assert profile.policy_for(AccessMethodType.GCS).auth is AccessUrlAuth.CURRENT_REQUEST

    def test_passport_profile_uses_configured_secrets(self):
        settings = DrsHubSettings(
            env=DeploymentEnv.DEV,
            passport_client_cert_secret="projects/p/secrets/cert/versions/1",
            passport_client_key_secret="projects/p/secrets/key/versions/1",
        )
        _, profile = resolve_provider("drs://dg.test0:abc", settings)
        assert profile.client_cert_secret_name == "projects/p/secrets/cert/versions/1"
        assert profile.policy_for(AccessMethodType.GCS).fallback_auth is AccessUrlAuth.FENCE_TOKEN

    def test_prod_hosts(self):
        settings = DrsHubSettings(env=DeploymentEnv.PROD)
        parts, profile = resolve_provider("drs://drs.anv0:v2_abc", settings)
        assert parts.host == "data.terra.bio"
        assert profile.name == "Terra Data Repo (TDR)"

    def test_force_flag_is_applied(self, settings):
        _, plain = resolve_provider("drs://dg.4503:abc", settings)
        _, forced = resolve_provider("drs://dg.4503:abc", settings, force_access_url=True)
        assert plain.force_access_url is False
        assert forced.force_access_url is True

    def test_resolution_is_pure(self, settings):
        """The same URI and settings always yield equal parts and profiles."""
        first = resolve_provider("drs://dg.4dfc:abc", settings)
        second = resolve_provider("drs://dg.4dfc:abc", settings)
        assert first == second

    def test_dataguids_is_retired(self, settings):
        with pytest.raises(RetiredNamespaceError) as excinfo:
            resolve_provider("drs://dataguids.org/a41b0c4f-ebfb-4277-a941-507340dea85d", settings)
        assert str(excinfo.value) == DATAGUIDS_MOVED_MESSAGE
        assert excinfo.value.status == 400

    def test_unknown_host(self, settings):
        with pytest.raises(RequestError) as excinfo:
            resolve_provider("drs://example.org/abc", settings)
        assert str(excinfo.value) == "Could not determine DRS provider for id 'drs://example.org/abc'"
