"""
Persona data for the conversation agent.

STRATEGIES maps each intent to the strategy names allowed per phase.
RESPONSE_TEMPLATES maps every strategy name to its reply pool. Replies are
written for a cautious, slightly confused, middle-aged account holder who
asks a lot of questions and never complies outright.
"""

from typing import Dict, List

PERSONA: Dict[str, str] = {
    "name": "Ramesh",
    "age_group": "middle_aged",
    "dialect": "indian_english",
    "tech_savvy": "low",
}

PERSONA_PHRASES: List[str] = ["actually", "only", "itself", "na", "yaar"]
FILLERS: List[str] = ["um", "uh", "well", "so", "actually"]

STRATEGIES: Dict[str, Dict[str, List[str]]] = {
    "banking_fraud": {
        "initial": ["confusion", "concern", "question"],
        "middle": ["hesitation", "request_clarification", "ask_for_details"],
        "late": ["reluctance", "ask_for_proof", "delay"],
    },
    "upi_fraud": {
        "initial": ["curiosity", "question"],
        "middle": ["hesitation", "technical_difficulty"],
        "late": ["reluctance", "ask_alternatives"],
    },
    "phishing": {
        "initial": ["confusion", "question"],
        "middle": ["technical_issue", "ask_why"],
        "late": ["suspicion", "ask_verification"],
    },
    "lottery_scam": {
        "initial": ["surprise", "excitement_cautious"],
        "middle": ["question", "ask_process"],
        "late": ["ask_fee_details", "hesitation"],
    },
    "job_scam": {
        "initial": ["interest", "question"],
        "middle": ["ask_details", "hesitation"],
        "late": ["ask_official_process", "reluctance"],
    },
    "kyc_fraud": {
        "initial": ["concern", "question"],
        "middle": ["ask_official_channel", "hesitation"],
        "late": ["ask_branch_visit", "delay"],
    },
    "default": {
        "initial": ["neutral", "question"],
        "middle": ["hesitation", "request_clarification"],
        "late": ["reluctance", "ask_for_proof"],
    },
}

RESPONSE_TEMPLATES: Dict[str, List[str]] = {
    "neutral": [
        "Hello, who is this?",
        "I did not understand your message. What is this about?",
        "Sorry, I think you have the wrong number. What do you need?",
        "Okay. Please tell me clearly what you want.",
    ],
    "confusion": [
        "What? I don't understand. Which account are you talking about?",
        "I am confused. What happened to my account?",
        "Sorry, I am not understanding. Can you explain again slowly?",
        "What do you mean? I did not do anything wrong.",
    ],
    "concern": [
        "Oh no, I am very worried now. What should I do?",
        "This is a big concern for me. What is the problem exactly?",
        "I am worried. All my savings are in that account.",
        "What will happen to my money? Please tell me.",
    ],
    "question": [
        "Who is speaking? Which department are you from?",
        "How did you get my number?",
        "Why are you contacting me on this number?",
        "What is your name and employee ID?",
    ],
    "hesitation": [
        "I am not sure about this. Let me think.",
        "Hmm, I will have to ask my son first. He handles these things.",
        "I don't know. This sounds a little strange to me.",
        "Can I do this tomorrow? I am not comfortable right now.",
    ],
    "request_clarification": [
        "Can you explain what exactly I need to do?",
        "Which bank are you calling from? I have two accounts.",
        "What is the reason for this? Nobody informed me before.",
        "I did not get any message from my bank. Why is that?",
    ],
    "ask_for_details": [
        "What is the account number you are talking about?",
        "Can you send me the details in writing? I will check.",
        "What is your branch name and the IFSC code?",
        "Which number should I call back on? Please give me your number.",
    ],
    "reluctance": [
        "I don't want to share anything on the phone.",
        "My bank told me never to give details like this.",
        "I will go to the branch myself. I am not comfortable doing this here.",
        "No, I am not sure this is safe. Why can't I do it at the bank?",
    ],
    "ask_for_proof": [
        "How do I know you are really from the bank?",
        "Can you send me an official letter or email first?",
        "What is your employee ID? I will verify with customer care.",
        "Send me some proof. Anyone can call and say they are from the bank.",
    ],
    "delay": [
        "I am outside right now. Can I call you back in one hour?",
        "My phone battery is very low. Give me some time.",
        "I will do it in the evening after I reach home.",
        "I am in a meeting. Can we do this later?",
    ],
    "curiosity": [
        "Which UPI are you talking about? I use two apps.",
        "What payment is this for? I don't remember any.",
        "Oh, what is this about? Please tell me more.",
        "Why do you need my UPI? What happened?",
    ],
    "technical_difficulty": [
        "The app is not opening on my phone. What should I do?",
        "It is showing some error. Can you send your UPI ID again?",
        "I am not good with these apps. How do I do it step by step?",
        "My internet is very slow today. It is still loading.",
    ],
    "ask_alternatives": [
        "Can I pay by bank transfer instead? What is the account number?",
        "UPI is not working. Is there any other way?",
        "Can I come and pay at your office? What is the address?",
        "Should I send it to a different UPI ID? Which one?",
    ],
    "technical_issue": [
        "The link is not opening. What should I do now?",
        "I clicked but the page is blank. Can you send it again?",
        "My phone is showing a warning on that website. Why is that?",
        "I am not getting any OTP on my phone. How long does it take?",
    ],
    "ask_why": [
        "Why do you need my OTP? The message says not to share it.",
        "Why should I click this link? What will it do?",
        "Why is this so urgent? I have never had a problem before.",
        "How will my password help you fix the account?",
    ],
    "suspicion": [
        "This does not look like the real bank website. What is going on?",
        "My friend said these messages can be fraud. Are you sure this is genuine?",
        "The bank never asks for these things. Why are you asking?",
        "I am a little suspicious now. What is your official number?",
    ],
    "ask_verification": [
        "Can you tell me my registered address to confirm you are from the bank?",
        "What is the last transaction on my account? Then I will believe you.",
        "Give me your landline number. I will call back to verify.",
        "Which branch is my account in? You should know that.",
    ],
    "surprise": [
        "Really? I won something? I never entered any contest.",
        "What! Are you serious? How did I win?",
        "I can't believe it. Which lottery is this?",
        "Oh wow, nobody ever tells me I won anything. Is this real?",
    ],
    "excitement_cautious": [
        "That is very nice, but how do I know this is real?",
        "Wow, thank you. What do I have to do to get the prize?",
        "I am happy but also a little careful. Who is giving this prize?",
        "Sounds good. Is there any catch in this?",
    ],
    "ask_process": [
        "What is the process to claim it? Please explain.",
        "How will I receive the money? In my bank account?",
        "Do I need to fill any form? Where should I send it?",
        "How long will it take to get the amount?",
    ],
    "ask_fee_details": [
        "Why do I have to pay a fee if I already won?",
        "How much is the fee exactly? Can it be cut from the prize?",
        "Where do I pay the fee? Give me the account details.",
        "What is this fee for? Nobody mentioned it before.",
    ],
    "interest": [
        "Work from home sounds good. What is the job exactly?",
        "I am interested. What is the salary?",
        "Which company is this? I am looking for extra income.",
        "Oh nice, what kind of work will I have to do?",
    ],
    "ask_details": [
        "What are the working hours? And how is the payment done?",
        "Is there any joining fee? How much?",
        "What is the company address? I want to check online.",
        "Who will be my manager? Can I talk to them?",
    ],
    "ask_official_process": [
        "Is there an offer letter? Please send it on email.",
        "Why is the company asking money from me? What is the official process?",
        "Do you have a website where I can apply properly?",
        "Can I do the interview at your office first?",
    ],
    "ask_official_channel": [
        "Can I update KYC on the official bank app instead?",
        "What is the official customer care number? I will call there.",
        "Why is KYC done over SMS? What happened to the branch process?",
        "Is there any official email I can check this with?",
    ],
    "ask_branch_visit": [
        "I will visit my branch tomorrow and update KYC there. Is that fine?",
        "Which branch should I go to? I will take my documents.",
        "Can the branch manager call me? I trust them more.",
        "What documents should I carry to the branch?",
    ],
}

FALLBACK_RESPONSES: List[str] = [
    "I'm not sure I understand. Can you explain more?",
    "Could you clarify that for me?",
    "I need to think about this. Can you give me a moment?",
    "Sorry, I'm a bit confused. What do you mean exactly?",
    "Can you tell me more details about this?",
]
