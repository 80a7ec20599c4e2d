"""
Services package - Business logic layer.
"""

from .intake_service import IntakeService, LogResult
from .gamification_service import GamificationService

__all__ = ['IntakeService', 'LogResult', 'GamificationService']
