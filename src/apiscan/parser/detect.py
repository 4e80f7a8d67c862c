"""Auto-detect the web framework and module layout of a project."""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

BUILD_FILES = ("pom.xml", "build.gradle", "build.gradle.kts")
MAVEN_MARKERS = ("spring-boot-starter", "spring-webmvc")
GRADLE_MARKERS = ("spring-boot-starter-web", "spring-webmvc")
SOURCE_MARKERS = ("@RestController", "@Controller", "@SpringBootApplication", "@RequestMapping")
NON_SERVICE_DIRS = {"docs", "target", "build", "postman_collection"}
KNOWN_FRAMEWORKS = ("Spring",)


class FrameworkNotDetectedError(Exception):
    """Raised when no supported annotation style is found in a project."""


def detect_framework(project_path: Path) -> str | None:
    """Detect the framework used by a project.

    Returns: 'Spring', or None when nothing recognizable is found.
    Multi-module parents are detected through their modules.
    """
    if _is_spring(project_path):
        return "Spring"
    for child in _child_dirs(project_path):
        if _is_spring(child):
            return "Spring"
    return None


def require_framework(project_path: Path, forced: str | None = None) -> str:
    """Return the framework to scan with, or raise FrameworkNotDetectedError."""
    if forced:
        for name in KNOWN_FRAMEWORKS:
            if name.lower() == forced.lower():
                return name
        raise FrameworkNotDetectedError(f"Unsupported framework: {forced}")
    framework = detect_framework(project_path)
    if framework is None:
        raise FrameworkNotDetectedError(f"No supported framework detected in {project_path}")
    return framework


def is_independent_microservices(project_path: Path) -> bool:
    """True when the root has no build file but at least two child services do."""
    if any((project_path / name).exists() for name in BUILD_FILES):
        return False
    return len(find_microservices(project_path)) >= 2


def find_microservices(project_path: Path) -> list[Path]:
    return [
        child for child in _child_dirs(project_path)
        if child.name not in NON_SERVICE_DIRS and any((child / name).exists() for name in BUILD_FILES)
    ]


def _is_spring(project_path: Path) -> bool:
    pom = project_path / "pom.xml"
    if pom.is_file() and _contains(pom, MAVEN_MARKERS):
        logger.debug("Spring detected from %s", pom)
        return True
    for gradle in ("build.gradle", "build.gradle.kts"):
        path = project_path / gradle
        if path.is_file() and _contains(path, GRADLE_MARKERS):
            logger.debug("Spring detected from %s", path)
            return True

    resources = project_path / "src" / "main" / "resources"
    if resources.is_dir():
        for pattern in ("application*.properties", "application*.yml", "application*.yaml"):
            if any(resources.glob(pattern)) or any(resources.glob(f"*/{pattern}")):
                return True

    source_root = project_path / "src" / "main" / "java"
    if source_root.is_dir():
        for java_file in sorted(source_root.rglob("*.java"))[:10]:
            if _contains(java_file, SOURCE_MARKERS):
                return True
    return False


def _contains(path: Path, markers: tuple[str, ...]) -> bool:
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning("Cannot read %s: %s", path, e)
        return False
    return any(marker in text for marker in markers)


def _child_dirs(project_path: Path) -> list[Path]:
    if not project_path.is_dir():
        return []
    return [c for c in sorted(project_path.iterdir()) if c.is_dir() and not c.name.startswith(".")]
