"""
Statistical scam detector: multinomial naive Bayes over a bag of words.

The model is trained once at startup from a small fixed corpus of labeled
scam and legitimate messages. It is intentionally simple: numpy count
matrices, Laplace smoothing, log-space posteriors. No feedback loop; the
only way to change it is add_example() followed by a retrain.
"""

import logging
import re
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from honeypot.signals import SignalScore

logger = logging.getLogger(__name__)

SCAM_LABEL = "scam"
LEGITIMATE_LABEL = "legitimate"

SCAM_EXAMPLES: List[str] = [
    "Your bank account will be blocked today. Verify immediately.",
    "Dear customer your bank account has been blocked. Verify your KYC immediately to avoid suspension.",
    "Your account will be suspended today. Update KYC immediately by clicking the link.",
    "URGENT: your SBI account is blocked. Verify now at the link below.",
    "Share the OTP sent to your mobile immediately to stop account suspension.",
    "Send your ATM pin and card CVV to verify your identity today.",
    "Congratulations! You have won a lottery prize of 25 lakh. Pay processing fee to claim.",
    "You are the lucky winner of our prize draw. Send registration fee immediately.",
    "Pay the pending payment to this UPI id immediately or your account will be blocked.",
    "Transfer Rs 5000 to avoid legal action. This is your final warning.",
    "Work from home job, earn 5000 daily. Pay registration fee to start today.",
    "Your KYC has expired. Click the link and update your details immediately or account will be suspended.",
    "This is RBI officer. Your account is under investigation. Verify your details now.",
    "Last chance to claim your cashback reward. Click the link and enter your card number.",
    "Your electricity will be disconnected tonight. Call this number immediately and pay.",
    "Install AnyDesk app now so our executive can verify your account.",
    "Your PAN card is blocked. Update immediately using the link or face penalty.",
    "We detected suspicious activity. Confirm your password and OTP urgently.",
]

LEGITIMATE_EXAMPLES: List[str] = [
    "Your transaction of Rs. 500 was successful. Reference: 123456.",
    "Thank you for banking with us. Your monthly statement is now available.",
    "Your order has been shipped and will be delivered on Friday.",
    "Hi, are we still meeting for lunch tomorrow?",
    "Your salary has been credited to your account.",
    "Reminder: your dentist appointment is scheduled for Monday at 10 am.",
    "Your bill payment was received. Thank you.",
    "Happy birthday! Hope you have a wonderful day.",
    "The meeting has been moved to 3 pm in the conference room.",
    "Your parcel was delivered to the front desk.",
    "Your recharge was successful. Enjoy your data pack.",
    "Please find the attached report for last quarter.",
    "Your cab is arriving in 5 minutes. Driver details shared in the app.",
    "Transaction alert: Rs. 1200 debited at grocery store. Reference number 884213.",
]

STOPWORDS = frozenset({
    "the", "a", "an", "is", "are", "was", "were", "be", "been", "will", "your",
    "you", "to", "of", "and", "or", "in", "on", "for", "this", "that", "it",
    "i", "my", "we", "our", "us", "has", "have", "with", "at", "by", "from",
    "as", "so", "do", "can",
})

_TOKEN = re.compile(r"[a-z]{2,}")


def tokenize(text: str) -> List[str]:
    return [tok for tok in _TOKEN.findall(text.lower()) if tok not in STOPWORDS]


class NaiveBayesClassifier:
    """Multinomial naive Bayes with Laplace smoothing."""

    def __init__(self, alpha: float = 1.0) -> None:
        self.alpha = alpha
        self._examples: List[Tuple[str, str]] = []
        self._labels: List[str] = []
        self._vocab: Dict[str, int] = {}
        self._log_prior: Optional[np.ndarray] = None
        self._log_likelihood: Optional[np.ndarray] = None
        self._lock = threading.Lock()

    @property
    def is_trained(self) -> bool:
        return self._log_likelihood is not None

    @property
    def labels(self) -> List[str]:
        return list(self._labels)

    def add_document(self, text: str, label: str) -> None:
        with self._lock:
            self._examples.append((text, label))

    def train(self) -> bool:
        """Fit on every document added so far. Needs at least two labels."""
        with self._lock:
            labels = sorted({label for _, label in self._examples})
            if len(labels) < 2:
                logger.warning("Classifier needs two labels to train, got %d", len(labels))
                return False

            tokenized = [(tokenize(text), label) for text, label in self._examples]
            vocab: Dict[str, int] = {}
            for tokens, _ in tokenized:
                for tok in tokens:
                    vocab.setdefault(tok, len(vocab))

            label_index = {label: i for i, label in enumerate(labels)}
            counts = np.zeros((len(labels), len(vocab)), dtype=np.float64)
            docs = np.zeros(len(labels), dtype=np.float64)
            for tokens, label in tokenized:
                row = label_index[label]
                docs[row] += 1
                for tok in tokens:
                    counts[row, vocab[tok]] += 1

            smoothed = counts + self.alpha
            self._labels = labels
            self._vocab = vocab
            self._log_prior = np.log(docs / docs.sum())
            self._log_likelihood = np.log(smoothed / smoothed.sum(axis=1, keepdims=True))

        logger.info(f"Classifier trained on {len(tokenized)} documents, vocab={len(vocab)}")
        return True

    def classify(self, text: str) -> Dict[str, float]:
        """Posterior per label. Empty when untrained or no token is known."""
        if not self.is_trained:
            return {}
        indices = [self._vocab[tok] for tok in tokenize(text) if tok in self._vocab]
        if not indices:
            return {}
        joint = self._log_prior + self._log_likelihood[:, indices].sum(axis=1)
        joint -= joint.max()
        probs = np.exp(joint)
        probs /= probs.sum()
        return {label: float(p) for label, p in zip(self._labels, probs)}


class StatisticalDetector:
    """Wraps the classifier as a signal detector returning P(scam)."""

    INDICATOR_THRESHOLD = 0.5

    def __init__(self, classifier: Optional[NaiveBayesClassifier] = None,
                 train: bool = True) -> None:
        self.classifier = classifier or NaiveBayesClassifier()
        if classifier is None and train:
            for text in SCAM_EXAMPLES:
                self.classifier.add_document(text, SCAM_LABEL)
            for text in LEGITIMATE_EXAMPLES:
                self.classifier.add_document(text, LEGITIMATE_LABEL)
            try:
                self.classifier.train()
            except Exception as e:
                logger.error(f"Classifier initialization failed: {e}", exc_info=True)

    @property
    def initialized(self) -> bool:
        return self.classifier.is_trained

    def add_example(self, text: str, label: str) -> None:
        self.classifier.add_document(text, label)
        self.classifier.train()
        logger.info(f"Added training example label={label}")

    def score(self, text: str, history: Sequence[Any] = ()) -> SignalScore:
        if not self.initialized:
            return SignalScore()
        try:
            probability = self.classifier.classify(text).get(SCAM_LABEL, 0.0)
        except Exception as e:
            logger.error(f"Statistical classification error: {e}")
            return SignalScore()
        indicators = ["ml_classification"] if probability > self.INDICATOR_THRESHOLD else []
        return SignalScore(max(0.0, min(probability, 1.0)), indicators)
