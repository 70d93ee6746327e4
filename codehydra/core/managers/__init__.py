from codehydra.core.managers.projects import ProjectManager

__all__ = ["ProjectManager"]
