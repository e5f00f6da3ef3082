from mbuild.modules.target import AGNOSTIC, Platform, Target, TargetTag


def test_agnostic_target_supports_every_platform():
    assert AGNOSTIC.is_any_platform_supported(Platform.WEB)
    assert AGNOSTIC.is_any_platform_supported(Platform.DESKTOP, Platform.NATIVE)
    assert not AGNOSTIC.is_executable()


def test_restricted_target():
    target = Target.of([Platform.DESKTOP], [TargetTag.DESKTOP_UI], [Platform.DESKTOP])
    assert target.is_any_platform_supported(Platform.DESKTOP)
    assert not target.is_any_platform_supported(Platform.WEB)
    assert target.is_any_platform_supported(Platform.WEB, Platform.DESKTOP)
    assert target.is_executable()
    assert target.is_executable(Platform.DESKTOP)
    assert not target.is_executable(Platform.WEB)
    assert target.has_tag(TargetTag.DESKTOP_UI)
    assert str(target) == "desktop[desktop-ui]"


def test_parse_is_case_insensitive():
    assert Platform.parse(" Web ") is Platform.WEB
    assert TargetTag.parse("NATIVE-MOBILE") is TargetTag.NATIVE_MOBILE
