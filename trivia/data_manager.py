"""
Data manager for JSON category files, purchases and result persistence.
"""
import json
import os
import logging
import time
from typing import Any, Dict, List, Optional
from pathlib import Path

from .models import OPTION_LABELS, Category, Question


class DataManager:
    """Manages loading and validation of bilingual category files."""

    MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB

    def __init__(self, data_directory: str = "./data/", results_directory: str = "./results/"):
        """
        Initialize DataManager with data and results directory paths.

        Args:
            data_directory: Directory holding `categories/*.json` and `purchases.json`
            results_directory: Directory where finished session results are written
        """
        self.data_directory = Path(data_directory)
        self.results_directory = Path(results_directory)
        self.categories: Dict[str, Category] = {}
        self.questions: Dict[str, List[Question]] = {}
        self.purchases: Dict[str, List[str]] = {}
        self.logger = logging.getLogger(__name__)
        self.load_errors: List[str] = []

    @property
    def categories_directory(self) -> Path:
        return self.data_directory / "categories"

    @property
    def purchases_file(self) -> Path:
        return self.data_directory / "purchases.json"

    def load_data(self) -> Dict[str, List[Question]]:
        """
        Load every category file and the purchase table, collecting errors per file.

        Returns:
            Dictionary mapping category ids to their questions
        """
        self.categories.clear()
        self.questions.clear()
        self.purchases.clear()
        self.load_errors.clear()

        if not self.categories_directory.is_dir():
            message = f"Category directory not found: {self.categories_directory}"
            self.logger.warning(message)
            self.load_errors.append(message)
        else:
            json_files = sorted(self.categories_directory.glob("*.json"))
            if not json_files:
                self.logger.warning(f"No category files found in {self.categories_directory}")
                self.load_errors.append(f"No category files found in {self.categories_directory}")

            for json_file in json_files:
                load_result = self._load_category_file_safely(json_file)
                if not load_result['success']:
                    self.load_errors.append(f"{json_file.name}: {load_result['error']}")

        purchase_result = self._load_purchases_safely()
        if not purchase_result['success']:
            self.load_errors.append(f"{self.purchases_file.name}: {purchase_result['error']}")

        self.logger.info(
            f"Loaded {len(self.categories)} categories and {len(self.purchases)} purchases"
        )
        if self.load_errors:
            self.logger.warning(f"Encountered {len(self.load_errors)} loading errors")

        return self.questions

    def _read_json(self, file_path: Path) -> Any:
        if file_path.stat().st_size > self.MAX_FILE_SIZE:
            raise ValueError(f"File too large ({file_path.stat().st_size / 1024 / 1024:.1f}MB)")
        with open(file_path, 'r', encoding='utf-8') as f:
            return json.load(f)

    def _load_category_file_safely(self, json_file: Path) -> Dict[str, Any]:
        """
        Load a single category file with error handling.

        Args:
            json_file: Path to the JSON file to load

        Returns:
            Dictionary with success status and error message if applicable
        """
        try:
            data = self._read_json(json_file)
        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in {json_file}: {e}")
            return {'success': False, 'error': f"Invalid JSON: {e}"}
        except PermissionError:
            return {'success': False, 'error': "Permission denied"}
        except (OSError, ValueError) as e:
            return {'success': False, 'error': str(e)}

        error = self.validate_category_structure(data)
        if error:
            self.logger.error(f"Invalid category structure in {json_file}: {error}")
            return {'success': False, 'error': error}

        category_data = data["category"]
        category = Category(
            id=str(category_data["id"]),
            name_ar=category_data.get("name_ar", ""),
            name_en=category_data.get("name_en", ""),
        )
        self.categories[category.id] = category
        self.questions[category.id] = self._parse_questions(category.id, data["questions"])
        self.logger.info(
            f"Loaded category '{category.id}' with {len(self.questions[category.id])} questions"
        )
        return {'success': True}

    def validate_category_structure(self, data: Any) -> Optional[str]:
        """
        Validate a category file.

        Expected structure:
        {
            "category": {"id": str, "name_ar": str, "name_en": str},
            "questions": [
                {
                    "id": str,
                    "question_ar": str, "question_en": str,
                    "option_a_ar": str, ... "option_d_en": str,
                    "correct_answer": "A" | "B" | "C" | "D",
                    "difficulty_level": int | null,
                    "explanation_ar": str, "explanation_en": str
                }
            ]
        }

        Args:
            data: Parsed JSON data to validate

        Returns:
            None when valid, otherwise a description of the first problem
        """
        if not isinstance(data, dict):
            return "Category data must be a JSON object"

        category = data.get("category")
        if not isinstance(category, dict) or "id" not in category:
            return "Category data must contain a 'category' object with an 'id'"

        questions = data.get("questions")
        if not isinstance(questions, list):
            return "'questions' value must be an array"

        for i, question_data in enumerate(questions):
            if not isinstance(question_data, dict):
                return f"Question {i} must be an object"

            if "id" not in question_data:
                return f"Question {i} missing 'id' field"

            if not (question_data.get("question_ar") or question_data.get("question_en")):
                return f"Question {i} needs 'question_ar' or 'question_en'"

            correct = question_data.get("correct_answer")
            if not isinstance(correct, str) or correct.upper() not in OPTION_LABELS:
                return f"Question {i} 'correct_answer' must be one of {', '.join(OPTION_LABELS)}"

            level = question_data.get("difficulty_level")
            if level is not None and (isinstance(level, bool) or not isinstance(level, int)):
                return f"Question {i} 'difficulty_level' must be an integer or null"

        return None

    def _parse_questions(self, category_id: str, questions_data: List[dict]) -> List[Question]:
        questions = []
        for question_data in questions_data:
            options_ar = {}
            options_en = {}
            for label in OPTION_LABELS:
                key = label.lower()
                options_ar[label] = question_data.get(f"option_{key}_ar", "")
                options_en[label] = question_data.get(f"option_{key}_en", "")

            questions.append(Question(
                id=str(question_data["id"]),
                prompt_ar=question_data.get("question_ar", ""),
                prompt_en=question_data.get("question_en", ""),
                options_ar=options_ar,
                options_en=options_en,
                correct_option=question_data["correct_answer"].upper(),
                tier=question_data.get("difficulty_level"),
                explanation_ar=question_data.get("explanation_ar"),
                explanation_en=question_data.get("explanation_en"),
                category_id=category_id,
            ))
        return questions

    def _load_purchases_safely(self) -> Dict[str, Any]:
        if not self.purchases_file.exists():
            return {'success': False, 'error': "File not found"}

        try:
            data = self._read_json(self.purchases_file)
        except json.JSONDecodeError as e:
            return {'success': False, 'error': f"Invalid JSON: {e}"}
        except (OSError, ValueError) as e:
            return {'success': False, 'error': str(e)}

        purchases = data.get("purchases") if isinstance(data, dict) else None
        if not isinstance(purchases, list):
            return {'success': False, 'error': "Purchases data must contain a 'purchases' array"}

        for i, purchase in enumerate(purchases):
            if not isinstance(purchase, dict) or "id" not in purchase:
                return {'success': False, 'error': f"Purchase {i} missing 'id' field"}
            categories = purchase.get("categories", [])
            if not isinstance(categories, list):
                return {'success': False, 'error': f"Purchase {i} 'categories' must be an array"}
            self.purchases[str(purchase["id"])] = [str(c) for c in categories]

        return {'success': True}

    def get_purchase_categories(self, purchase_ref: str) -> List[str]:
        """
        Resolve a purchase to its ordered category ids.

        Args:
            purchase_ref: Purchase identifier

        Returns:
            Ordered list of category ids (empty if the purchase is unknown)
        """
        return list(self.purchases.get(purchase_ref, []))

    def fetch_questions(self, category_id: str, limit: int,
                        order_by_difficulty_asc: bool = True) -> List[Question]:
        """
        Fetch up to `limit` questions of a category.

        Args:
            category_id: Category to read from
            limit: Maximum number of questions
            order_by_difficulty_asc: Sort by tier ascending, missing tiers last

        Returns:
            List of Question objects
        """
        questions = list(self.questions.get(category_id, []))
        if order_by_difficulty_asc:
            questions.sort(key=lambda q: (q.tier is None, q.tier or 0))
        return questions[:max(limit, 0)]

    def get_category(self, category_id: str) -> Optional[Category]:
        return self.categories.get(category_id)

    def get_available_purchases(self) -> List[str]:
        return list(self.purchases.keys())

    def save_results(self, session_id: str, payload: Dict[str, Any]) -> bool:
        """
        Persist a finished session's results as JSON. Failures are logged, never raised.

        Args:
            session_id: Session identifier used for the file name
            payload: Serializable results payload

        Returns:
            True if the file was written, False otherwise
        """
        try:
            self.results_directory.mkdir(parents=True, exist_ok=True)
            file_path = self.results_directory / f"{session_id}.json"
            record = dict(payload)
            record.setdefault('session_id', session_id)
            record.setdefault('saved_at', time.time())
            with open(file_path, 'w', encoding='utf-8') as f:
                json.dump(record, f, indent=2, ensure_ascii=False)
            self.logger.info(f"Saved results for session {session_id} to {file_path}")
            return True
        except (OSError, TypeError, ValueError) as e:
            self.logger.error(f"Failed to save results for session {session_id}: {e}")
            return False

    def get_load_errors(self) -> List[str]:
        return self.load_errors.copy()

    def has_load_errors(self) -> bool:
        return len(self.load_errors) > 0

    def get_loading_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the last loading operation.

        Returns:
            Dictionary with loading statistics and status
        """
        return {
            'total_categories': len(self.categories),
            'total_questions': sum(len(q) for q in self.questions.values()),
            'total_purchases': len(self.purchases),
            'has_errors': self.has_load_errors(),
            'error_count': len(self.load_errors),
            'errors': self.get_load_errors(),
            'data_directory': str(self.data_directory),
            'available_purchases': self.get_available_purchases(),
            'data_directory_readable': os.access(self.data_directory, os.R_OK),
        }
