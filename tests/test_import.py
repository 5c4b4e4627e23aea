"""Test that all public exports are importable."""


def test_import_main():
    """Test importing main module."""
    import eventmix
    assert hasattr(eventmix, 'PlaylistGenerator')
    assert hasattr(eventmix, '__version__')


def test_import_stages():
    """Test importing the generation stages."""
    from eventmix.stages import (
        CommonLibraryStage,
        TopTracksStage,
        GenreRecommendationStage,
        PlaylistMaterializationStage,
    )
    assert all([
        CommonLibraryStage,
        TopTracksStage,
        GenreRecommendationStage,
        PlaylistMaterializationStage,
    ])


def test_import_ratelimit():
    """Test importing rate limiting utilities."""
    from eventmix.ratelimit import api_call, safe_api_call, RateLimitError
    from eventmix import config
    assert api_call is not None
    assert safe_api_call is not None
    assert RateLimitError is not None
    assert config.API_MAX_RETRIES > 0


def test_import_catalog():
    """Test importing storage classes."""
    from eventmix import CacheConfig, DataCatalog, TableStore
    assert CacheConfig is not None
    assert DataCatalog is not None
    assert TableStore is not None
