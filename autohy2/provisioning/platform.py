"""Host platform detection and release artifact URL construction."""

import platform

DEFAULT_VERSION = "2.6.2"
DEFAULT_RELEASE_BASE_URL = "https://github.com/apernet/hysteria/releases/download"
ARTIFACT_NAME = "hysteria"

# platform.machine() value -> release architecture suffix
ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
    "armv7l": "arm",
    "s390x": "s390x",
    "riscv64": "riscv64",
}

SUPPORTED_OS = {"linux", "darwin", "freebsd"}


def resolve_arch(machine=None) -> str:
    """Map a machine name (default: this host's) to a release architecture."""
    machine = (machine if machine is not None else platform.machine()).lower()
    try:
        return ARCH_ALIASES[machine]
    except KeyError:
        raise ValueError(f"Unsupported architecture '{machine}'. Known: {', '.join(sorted(ARCH_ALIASES))}") from None


def resolve_os(system=None) -> str:
    """Map a system name (default: this host's) to a release OS name."""
    name = (system if system is not None else platform.system()).lower()
    if name not in SUPPORTED_OS:
        raise ValueError(f"Unsupported operating system '{name}'")
    return name


def artifact_url(version, os_name, arch, base_url=DEFAULT_RELEASE_BASE_URL, artifact=ARTIFACT_NAME) -> str:
    """Build ``<base>/v<version>/<artifact>-<os>-<arch>.tar.gz``.

    A version given with a leading ``v`` is used as-is.
    """
    tag = version if version.startswith("v") else f"v{version}"
    return f"{base_url.rstrip('/')}/{tag}/{artifact}-{os_name}-{arch}.tar.gz"
