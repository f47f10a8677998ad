# ========================
# src/utils/data_generator.py
# ========================

"""
Data Generation Utilities

Generates contact CSV files with controlled error injection, for demos and
load tests of the import pipeline.
"""

import csv
import logging
import random
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

CONTACT_COLUMNS = ['name', 'email', 'city', 'company']

class DataGenerator:
    """
    Contact data generator for creating realistic import files.
    """
    
    def __init__(self, seed: Optional[int] = None):
        """
        Initialize data generator.
        
        Args:
            seed (int): Random seed for reproducible data generation
        """
        self.random = random.Random(seed)
        self._initialize_data_patterns()
        logger.info(f"DataGenerator initialized with seed: {seed}")
    
    def _initialize_data_patterns(self) -> None:
        """Initialize name pools and value distributions."""
        self.first_names = [
            "Aarav", "Maya", "Liam", "Olivia", "Noah", "Priya", "Ethan", "Sofia",
            "Lucas", "Ananya", "Mateo", "Chloe", "Kabir", "Emma", "Arjun", "Zoe"
        ]
        self.last_names = [
            "Sharma", "Smith", "Garcia", "Patel", "Brown", "Khan", "Martin", "Rossi",
            "Nguyen", "Silva", "Kim", "Lopez"
        ]
        self.domains = ["example.com", "example.org", "mail.example.net", "corp.example.com"]
        # Blank city/company is common; the target list's defaults fill those in
        self.cities = ["Mumbai", "Berlin", "Austin", "Lisbon", "Toronto", "", ""]
        self.companies = ["Acme", "Globex", "Initech", "Umbrella", "", ""]
    
    def generate_dataset(self, 
                        file_path: str, 
                        num_rows: int,
                        error_rate: float = 0.1) -> Dict[str, Any]:
        """
        Generate a contact file with controlled error injection.
        
        Args:
            file_path (str): Output CSV file path
            num_rows (int): Number of rows to generate
            error_rate (float): Fraction of rows with an intentional error
            
        Returns:
            dict: Generation statistics
        """
        logger.info(f"Generating {num_rows:,} contacts with {error_rate:.1%} error rate...")
        
        stats = {
            'total_rows': num_rows,
            'error_rate': error_rate,
            'records_with_errors': 0,
            'error_types': {}
        }
        emitted_emails: List[str] = []
        
        Path(file_path).parent.mkdir(parents=True, exist_ok=True)
        
        with open(file_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(CONTACT_COLUMNS)
            
            for i in range(num_rows):
                record = self._generate_single_record(i, error_rate, stats, emitted_emails)
                writer.writerow(record)
                
                if (i + 1) % 10000 == 0:
                    logger.debug(f"Generated {i + 1:,} contacts")
        
        stats['error_rate_actual'] = stats['records_with_errors'] / num_rows if num_rows else 0
        
        logger.info(f"Dataset generated: {file_path}")
        logger.info(f"Error breakdown: {stats['error_types']}")
        
        return stats
    
    def _generate_single_record(self,
                               index: int,
                               error_rate: float,
                               stats: Dict[str, Any],
                               emitted_emails: List[str]) -> List[str]:
        """Generate a single contact row, possibly with an error."""
        first = self.random.choice(self.first_names)
        last = self.random.choice(self.last_names)
        name = f"{first} {last}"
        # Index suffix keeps emails unique unless a duplicate is injected
        email = f"{first.lower()}.{last.lower()}{index}@{self.random.choice(self.domains)}"
        city = self.random.choice(self.cities)
        company = self.random.choice(self.companies)
        
        if self.random.random() < error_rate:
            stats['records_with_errors'] += 1
            error_type = self.random.choice(['blank_name', 'invalid_email', 'duplicate_email'])
            if error_type == 'duplicate_email' and not emitted_emails:
                error_type = 'invalid_email'
            
            if error_type == 'blank_name':
                name = self.random.choice(["", "   "])
            elif error_type == 'invalid_email':
                email = self.random.choice([
                    f"{first.lower()}.{last.lower()}",
                    f"{first.lower()}@{last.lower()}",
                    "",
                    f"{first.lower()}@@example.com",
                ])
            else:
                email = self.random.choice(emitted_emails)
            self._track_error_type(stats, error_type)
        else:
            # Bounded sample pool for duplicate injection
            if len(emitted_emails) < 1000:
                emitted_emails.append(email)
        
        return [name, email, city, company]
    
    def _track_error_type(self, stats: Dict[str, Any], error_type: str) -> None:
        """Track error types for statistics."""
        stats['error_types'][error_type] = stats['error_types'].get(error_type, 0) + 1
