"""
Data manager for loading and validating the trivia subject dataset.
"""
import json
import os
import logging
from typing import Any, Dict, List, Optional
from pathlib import Path

from .exceptions import InsufficientDataError
from .models import FirstAppearance, Subject


BUNDLED_DATASET = Path(__file__).parent / "data" / "subjects.json"


class DataManager:
    """Manages loading and validation of the JSON subject dataset."""

    MIN_SUBJECTS = 4
    MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB limit

    def __init__(self, dataset_path: Optional[str] = None):
        """
        Initialize DataManager with the dataset file path.

        Args:
            dataset_path: Path to a JSON subject file, or None for the bundled dataset
        """
        self.dataset_path = Path(dataset_path) if dataset_path else BUNDLED_DATASET
        self.subjects: List[Subject] = []
        self.logger = logging.getLogger(__name__)
        self.load_errors: List[str] = []
        self.fallback_active = False

    def load_subjects(self) -> List[Subject]:
        """
        Load the subject dataset with comprehensive error handling.

        Falls back to the bundled dataset when a custom file cannot be used.

        Returns:
            List of Subject objects
        """
        self.subjects = []
        self.load_errors.clear()
        self.fallback_active = False

        load_result = self._load_dataset_safely(self.dataset_path)
        if load_result['success']:
            self.subjects = load_result['subjects']
            self.logger.info(f"Loaded {len(self.subjects)} subjects from {self.dataset_path}")
            return self.subjects

        self.load_errors.append(f"{self.dataset_path.name}: {load_result['error']}")

        if self.dataset_path != BUNDLED_DATASET:
            self.logger.warning(f"Falling back to bundled dataset: {load_result['error']}")
            fallback_result = self._load_dataset_safely(BUNDLED_DATASET)
            if fallback_result['success']:
                self.subjects = fallback_result['subjects']
                self.fallback_active = True
                return self.subjects
            self.load_errors.append(f"{BUNDLED_DATASET.name}: {fallback_result['error']}")

        self.logger.error("No subject dataset could be loaded")
        return self.subjects

    def _load_single_file(self, file_path: Path) -> Optional[dict]:
        """
        Load and parse a single JSON file.

        Args:
            file_path: Path to the JSON file

        Returns:
            Parsed JSON data or None if loading failed
        """
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
                if self.validate_dataset_structure(data):
                    return data
                else:
                    self.logger.error(f"Invalid dataset structure in {file_path}")
                    return None
        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in {file_path}: {e}")
            return None
        except FileNotFoundError:
            self.logger.error(f"Dataset file not found: {file_path}")
            return None
        except OSError as e:
            self.logger.error(f"Failed to read dataset file {file_path}: {e}")
            return None

    def validate_dataset_structure(self, data: dict) -> bool:
        """
        Validate that JSON data has the correct dataset structure.

        Expected structure:
        {
            "subjects": [
                {
                    "id": int,
                    "name": str,
                    "real_name": str,
                    "powers": [str],
                    "first_appearance": {"comic": str, "year": int},
                    "creators": [str],
                    "facts": [str],
                    "category": str,     # Optional
                    "image_url": str     # Optional
                }
            ]
        }

        Args:
            data: Parsed JSON data to validate

        Returns:
            True if structure is valid, False otherwise
        """
        if not isinstance(data, dict):
            self.logger.error("Dataset must be a JSON object")
            return False

        if "subjects" not in data:
            self.logger.error("Dataset must contain a 'subjects' key")
            return False

        subjects = data["subjects"]
        if not isinstance(subjects, list):
            self.logger.error("'subjects' value must be an array")
            return False

        if not subjects:
            self.logger.error("Subjects array cannot be empty")
            return False

        seen_ids = set()
        seen_names = set()
        for i, entry in enumerate(subjects):
            if not isinstance(entry, dict):
                self.logger.error(f"Subject {i} must be an object")
                return False

            for key in ("id", "name", "real_name", "powers", "first_appearance", "creators", "facts"):
                if key not in entry:
                    self.logger.error(f"Subject {i} missing '{key}' field")
                    return False

            if not isinstance(entry["id"], int):
                self.logger.error(f"Subject {i} 'id' field must be an integer")
                return False

            for key in ("name", "real_name"):
                if not isinstance(entry[key], str) or not entry[key].strip():
                    self.logger.error(f"Subject {i} '{key}' field must be a non-empty string")
                    return False

            for key in ("powers", "creators", "facts"):
                value = entry[key]
                if not isinstance(value, list) or not value or not all(isinstance(v, str) for v in value):
                    self.logger.error(f"Subject {i} '{key}' field must be a non-empty array of strings")
                    return False

            appearance = entry["first_appearance"]
            if (not isinstance(appearance, dict) or
                    not isinstance(appearance.get("comic"), str) or
                    not isinstance(appearance.get("year"), int)):
                self.logger.error(f"Subject {i} 'first_appearance' must have a 'comic' string and 'year' integer")
                return False

            if entry["id"] in seen_ids:
                self.logger.error(f"Subject {i} has duplicate id {entry['id']}")
                return False
            if entry["name"] in seen_names:
                self.logger.error(f"Subject {i} has duplicate name '{entry['name']}'")
                return False
            seen_ids.add(entry["id"])
            seen_names.add(entry["name"])

        return True

    def _parse_subjects(self, data: dict) -> List[Subject]:
        """
        Parse validated dataset into Subject objects.

        Args:
            data: Validated dataset dictionary

        Returns:
            List of Subject objects
        """
        subjects = []

        for entry in data["subjects"]:
            subject = Subject(
                id=entry["id"],
                name=entry["name"],
                real_name=entry["real_name"],
                powers=list(entry["powers"]),
                first_appearance=FirstAppearance(
                    comic=entry["first_appearance"]["comic"],
                    year=entry["first_appearance"]["year"]
                ),
                creators=list(entry["creators"]),
                facts=list(entry["facts"]),
                category=entry.get("category", "hero"),
                image_url=entry.get("image_url")
            )
            subjects.append(subject)

        return subjects

    def _load_dataset_safely(self, dataset_file: Path) -> Dict[str, Any]:
        """
        Load a dataset file with comprehensive error handling.

        Args:
            dataset_file: Path to the JSON file to load

        Returns:
            Dictionary with success status, subjects and error message if applicable
        """
        try:
            if not dataset_file.exists():
                return {
                    'success': False,
                    'error': "File not found"
                }

            if not os.access(dataset_file, os.R_OK):
                return {
                    'success': False,
                    'error': "Permission denied: Cannot read file"
                }

            file_size = dataset_file.stat().st_size
            if file_size > self.MAX_FILE_SIZE:
                return {
                    'success': False,
                    'error': f"File too large ({file_size / 1024 / 1024:.1f}MB). Maximum size is {self.MAX_FILE_SIZE / 1024 / 1024}MB"
                }

            data = self._load_single_file(dataset_file)
            if data is None:
                return {
                    'success': False,
                    'error': "Invalid JSON structure or validation failed"
                }

            subjects = self._parse_subjects(data)
            if len(subjects) < self.MIN_SUBJECTS:
                return {
                    'success': False,
                    'error': f"Dataset has {len(subjects)} subjects; at least {self.MIN_SUBJECTS} are required"
                }

            return {'success': True, 'subjects': subjects}

        except PermissionError:
            return {
                'success': False,
                'error': "Permission denied"
            }
        except OSError as e:
            return {
                'success': False,
                'error': f"System error: {e}"
            }

    def get_subjects(self) -> List[Subject]:
        """
        Get the loaded subjects, raising if the dataset is unusable.

        Returns:
            List of loaded subjects

        Raises:
            InsufficientDataError: If fewer than MIN_SUBJECTS subjects are loaded
        """
        if len(self.subjects) < self.MIN_SUBJECTS:
            raise InsufficientDataError(
                f"Dataset has {len(self.subjects)} subjects; at least {self.MIN_SUBJECTS} are required"
            )
        return list(self.subjects)

    def get_subject_count(self) -> int:
        return len(self.subjects)

    def has_load_errors(self) -> bool:
        return len(self.load_errors) > 0

    def get_load_errors(self) -> List[str]:
        return self.load_errors.copy()

    def get_loading_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the last dataset load.

        Returns:
            Dictionary with subject count, error details and fallback status
        """
        return {
            'dataset_path': str(self.dataset_path),
            'subject_count': len(self.subjects),
            'has_errors': self.has_load_errors(),
            'errors': self.get_load_errors(),
            'fallback_active': self.fallback_active
        }
