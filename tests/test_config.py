"""Tests for network profiles and provider configuration."""

import pytest

from utils.config import (
    NETWORK_PROFILES,
    ChainName,
    UnknownNetworkError,
    get_network_profile,
    get_parent_chain_name,
)
from utils.providers import get_async_web3, get_providers


class TestNetworkProfiles:
    @pytest.mark.parametrize(
        "chain_id, challenge_period, parent",
        [
            (42161, 604_800, ChainName.ETH_MAINNET),
            (42170, 604_800, ChainName.ETH_MAINNET),
            (421614, 3_600, ChainName.ETH_SEPOLIA),
        ],
    )
    def test_builtin_profiles(self, chain_id, challenge_period, parent):
        profile = get_network_profile(chain_id)

        assert profile.chain_id == chain_id
        assert profile.challenge_period_seconds == challenge_period
        assert get_parent_chain_name(profile) is parent

    def test_fee_constants(self, profile):
        assert profile.submission_cost_base_gas == 1_400
        assert profile.submission_cost_per_byte_gas == 6
        assert profile.calldata_zero_byte_gas == 4
        assert profile.calldata_non_zero_byte_gas == 16
        assert profile.submission_safety_multiplier_bps == 15_000

    def test_unknown_chain_id(self):
        with pytest.raises(UnknownNetworkError):
            get_network_profile(1)

    def test_profiles_are_read_only(self, profile):
        with pytest.raises(AttributeError):
            profile.challenge_period_seconds = 0

        with pytest.raises(TypeError):
            NETWORK_PROFILES[1] = profile

        assert get_network_profile(42161).challenge_period_seconds == 604_800


class TestProviders:
    def test_only_configured_urls_are_returned(self, monkeypatch):
        for name in ChainName:
            monkeypatch.delenv(f"{name}_RPC_URL", raising=False)
        monkeypatch.setenv("ARB_ONE_RPC_URL", "http://localhost:8547")

        assert get_providers() == {ChainName.ARB_ONE: "http://localhost:8547"}

    def test_missing_url_raises(self, monkeypatch):
        monkeypatch.delenv("ARB_NOVA_RPC_URL", raising=False)

        with pytest.raises(ValueError, match="ARB_NOVA_RPC_URL"):
            get_async_web3(ChainName.ARB_NOVA)

    def test_builds_async_web3(self, monkeypatch):
        monkeypatch.setenv("ARB_SEPOLIA_RPC_URL", "http://localhost:8547")

        w3 = get_async_web3(ChainName.ARB_SEPOLIA)

        assert w3.provider.endpoint_uri == "http://localhost:8547"
