from mockloop.core.provider_pool import ProviderPool


def _pool() -> ProviderPool:
    return ProviderPool({
        "openrouter": ["or-1", "or-2", "or-3"],
        "gemini": ["gm-1"],
    })


def test_credentials_keep_rotation_order():
    pool = _pool()

    labels = [c.label for c in pool.viable("openrouter")]

    assert labels == ["openrouter#1", "openrouter#2", "openrouter#3"]
    assert pool.epoch == 0


def test_empty_secrets_are_skipped():
    pool = ProviderPool({"groq": ["", "gq-1", ""]})

    assert [c.secret for c in pool.credentials("groq")] == ["gq-1"]


def test_mark_failed_removes_credential_until_reset():
    pool = _pool()
    first = pool.viable("openrouter")[0]

    assert pool.mark_failed(first) is True
    assert pool.mark_failed(first) is False
    assert [c.label for c in pool.viable("openrouter")] == ["openrouter#2", "openrouter#3"]
    assert pool.failed_count == 1

    epoch = pool.reset_epoch()

    assert epoch == 1
    assert pool.failed_count == 0
    assert len(pool.viable("openrouter")) == 3


def test_is_exhausted_only_when_every_provider_is_spent():
    pool = _pool()
    for credential in pool.viable("openrouter"):
        pool.mark_failed(credential)

    assert not pool.is_exhausted(["openrouter", "gemini"])

    pool.mark_failed(pool.viable("gemini")[0])

    assert pool.is_exhausted(["openrouter", "gemini"])


def test_unknown_provider_has_no_credentials():
    pool = _pool()

    assert pool.viable("groq") == []
    assert pool.is_exhausted(["groq"])


def test_from_settings_reads_comma_separated_keys(monkeypatch):
    from mockloop.config.settings import Settings

    monkeypatch.setenv("GROQ_API_KEYS", "gq-a, gq-b")
    monkeypatch.setenv("GEMINI_API_KEYS", "gm-a")

    pool = ProviderPool.from_settings(Settings())

    assert [c.secret for c in pool.credentials("groq")] == ["gq-a", "gq-b"]
    assert [c.secret for c in pool.credentials("gemini")] == ["gm-a"]
    assert pool.credentials("openrouter") == []
