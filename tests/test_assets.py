"""Tests for the artifact store and module staging."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

import pytest
from terraform.assets import ArtifactStore, AssetNotFoundError, default_store
from terraform.errors import UnpackError
from terraform.stage import unpack, unpack_modules


class TestArtifactStore:
    """Test ArtifactStore lookups and extraction."""

    def test_exists(self, store):
        assert store.exists('fake')
        assert store.exists('fake/main.tf')
        assert not store.exists('aws')

    def test_list(self, store):
        assert store.list('fake') == ['main.tf', 'modules']

    def test_unpack_directory_contents_into_base(self, store, work_dir):
        """Directory keys should land their children directly in base."""
        store.unpack(work_dir, 'fake')
        assert (work_dir / 'main.tf').read_text().startswith('module "net"')
        assert (work_dir / 'modules' / 'net' / 'main.tf').exists()
        assert not (work_dir / 'fake').exists()

    def test_unpack_file(self, store, work_dir):
        """File keys should be written to base itself."""
        store.unpack(work_dir / 'config.tf', 'config.tf')
        assert (work_dir / 'config.tf').read_text() == 'terraform {}\n'

    def test_unpack_overwrites(self, store, work_dir):
        """Existing files should be replaced."""
        (work_dir / 'config.tf').write_text('stale')
        store.unpack(work_dir / 'config.tf', 'config.tf')
        assert (work_dir / 'config.tf').read_text() == 'terraform {}\n'

    def test_missing_key_raises(self, store, work_dir):
        with pytest.raises(AssetNotFoundError) as exc_info:
            store.unpack(work_dir, 'aws')
        assert exc_info.value.key == 'aws'

    @pytest.mark.parametrize('key', ['../secrets', '/etc/passwd', 'fake/../../x', '', '.'])
    def test_keys_cannot_escape_root(self, store, key):
        """Keys must name an entry inside the store root, not the root itself."""
        assert not store.exists(key)
        with pytest.raises(AssetNotFoundError):
            store.unpack(Path('unused'), key)

    def test_default_store_has_auxiliary_files(self):
        """Bundled data should ship config.tf and terraform.rc."""
        store = default_store()
        assert store.exists('config.tf')
        assert store.exists('terraform.rc')


class TestUnpack:
    """Test module staging."""

    def test_stages_modules_and_auxiliary_files(self, store, work_dir):
        unpack('fake', work_dir, store)
        assert (work_dir / 'main.tf').exists()
        assert (work_dir / 'config.tf').exists()
        assert (work_dir / 'terraform.rc').exists()

    def test_rerun_is_idempotent(self, store, work_dir):
        """Staging twice should succeed with identical contents."""
        unpack('fake', work_dir, store)
        before = (work_dir / 'main.tf').read_text()
        unpack('fake', work_dir, store)
        assert (work_dir / 'main.tf').read_text() == before

    def test_missing_platform_wrapped(self, store, work_dir):
        """Unknown platform should raise UnpackError with the cause chained."""
        with pytest.raises(UnpackError) as exc_info:
            unpack_modules('aws', work_dir, store)
        assert exc_info.value.code == 'E200'
        assert 'failed to unpack Terraform modules' in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, AssetNotFoundError)

    @pytest.mark.parametrize('platform', ['', '.', 'fake/modules', 'config.tf'])
    def test_platform_must_be_top_level_tree(self, store, work_dir, platform):
        """Store root, nested trees, and files are not platforms."""
        with pytest.raises(UnpackError):
            unpack_modules(platform, work_dir, store)
        assert list(work_dir.iterdir()) == []

    def test_partial_failure_leaves_files(self, assets_dir, work_dir):
        """Module tree stays in place when an auxiliary file is missing."""
        (assets_dir / 'terraform.rc').unlink()
        with pytest.raises(UnpackError):
            unpack_modules('fake', work_dir, ArtifactStore(assets_dir))
        assert (work_dir / 'main.tf').exists()
        assert (work_dir / 'config.tf').exists()
        assert not (work_dir / 'terraform.rc').exists()
