from unittest.mock import MagicMock, patch

import httpx
from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse

from conversion.exceptions import ConversionError, ConversionTimeout
from conversion.services import CloudConvertClient, ConversionResult

API_URL = 'https://api.cloudconvert.test/v2'
UPLOAD_URL = 'https://upload.cloudconvert.test/tasks/import-1'
DOWNLOAD_URL = 'https://storage.cloudconvert.test/result.docx'


def job_created():
    return {'data': {
        'id': 'job-1',
        'status': 'waiting',
        'tasks': [
            {'name': 'import-1', 'operation': 'import/upload', 'status': 'waiting',
             'result': {'form': {'url': UPLOAD_URL, 'parameters': {'expires': 1700000000, 'signature': 'abc'}}}},
            {'name': 'convert-1', 'operation': 'convert', 'status': 'waiting'},
            {'name': 'export-1', 'operation': 'export/url', 'status': 'waiting'},
        ],
    }}


def job_status(status):
    tasks = [{'name': 'convert-1', 'operation': 'convert', 'status': 'finished'}]
    if status == 'finished':
        tasks.append({'name': 'export-1', 'operation': 'export/url', 'status': 'finished',
                      'result': {'files': [{'filename': 'result.docx', 'url': DOWNLOAD_URL}]}})
    elif status == 'error':
        tasks[0] = {'name': 'convert-1', 'operation': 'convert', 'status': 'error',
                    'message': 'The file is password protected'}
    return {'data': {'id': 'job-1', 'status': status, 'tasks': tasks}}


class FakeCloudConvert:
    def __init__(self, statuses):
        self.statuses = list(statuses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        url = str(request.url)
        if request.method == 'POST' and url == f'{API_URL}/jobs':
            return httpx.Response(201, json=job_created())
        if request.method == 'POST' and url == UPLOAD_URL:
            return httpx.Response(201)
        if request.method == 'GET' and url == f'{API_URL}/jobs/job-1':
            return httpx.Response(200, json=job_status(self.statuses.pop(0)))
        return httpx.Response(404, json={'message': 'Not found'})


class CloudConvertClientTests(SimpleTestCase):
    def make_client(self, handler, **kwargs):
        self.sleeps = []
        return CloudConvertClient(
            api_key='test-key',
            base_url=API_URL,
            transport=httpx.MockTransport(handler),
            sleep=self.sleeps.append,
            **kwargs,
        )

    def test_converts_after_polling(self):
        fake = FakeCloudConvert(['processing', 'processing', 'finished'])
        result = self.make_client(fake, poll_interval=2).convert_pdf_to_docx('report.pdf', b'%PDF-1.4')

        self.assertEqual(result.to_dict(), {'success': True, 'downloadUrl': DOWNLOAD_URL, 'conversionId': 'job-1'})
        self.assertEqual(self.sleeps, [2, 2, 2])

        create = fake.requests[0]
        self.assertEqual(create.headers['Authorization'], 'Bearer test-key')
        self.assertIn(b'"output_format":"docx"', create.content.replace(b' ', b''))
        upload = fake.requests[1]
        self.assertNotIn('Authorization', upload.headers)
        self.assertIn(b'name="signature"', upload.content)
        self.assertIn(b'filename="report.pdf"', upload.content)

    def test_job_error_uses_task_message(self):
        fake = FakeCloudConvert(['processing', 'error'])
        with self.assertRaises(ConversionError) as ctx:
            self.make_client(fake).convert_pdf_to_docx('report.pdf', b'%PDF-1.4')
        self.assertEqual(str(ctx.exception), 'The file is password protected')

    def test_gives_up_after_max_attempts(self):
        fake = FakeCloudConvert(['processing'] * 3)
        with self.assertRaises(ConversionTimeout):
            self.make_client(fake, max_attempts=3).convert_pdf_to_docx('report.pdf', b'%PDF-1.4')
        self.assertEqual(len(self.sleeps), 3)

    def test_job_creation_failure(self):
        def handler(request):
            return httpx.Response(401, json={'message': 'Invalid API key'})

        with self.assertRaises(ConversionError) as ctx:
            self.make_client(handler).convert_pdf_to_docx('report.pdf', b'%PDF-1.4')
        self.assertEqual(str(ctx.exception), 'Invalid API key')
        self.assertEqual(ctx.exception.status_code, 401)

    def test_network_failure_is_wrapped(self):
        def handler(request):
            raise httpx.ConnectError('no route to host', request=request)

        with self.assertRaises(ConversionError) as ctx:
            self.make_client(handler).convert_pdf_to_docx('report.pdf', b'%PDF-1.4')
        self.assertTrue(ctx.exception.recoverable)

    def test_non_json_job_response(self):
        def handler(request):
            return httpx.Response(201, text='<html>maintenance</html>')

        with self.assertLogs('conversion', level='ERROR'):
            with self.assertRaises(ConversionError) as ctx:
                self.make_client(handler).convert_pdf_to_docx('report.pdf', b'%PDF-1.4')
        self.assertEqual(str(ctx.exception), 'Conversion service returned an invalid response')

    def test_non_json_status_response(self):
        fake = FakeCloudConvert([])

        def handler(request):
            if request.method == 'GET':
                return httpx.Response(200, text='not json')
            return fake(request)

        with self.assertRaises(ConversionError) as ctx:
            self.make_client(handler).convert_pdf_to_docx('report.pdf', b'%PDF-1.4')
        self.assertTrue(ctx.exception.recoverable)

    def test_missing_api_key(self):
        with self.assertRaises(ConversionError):
            CloudConvertClient(api_key='').convert_pdf_to_docx('report.pdf', b'%PDF-1.4')


@override_settings(CLOUDCONVERT_API_KEY='test-key')
class PdfToDocxViewTests(TestCase):
    def setUp(self):
        cache.clear()
        self.addCleanup(cache.clear)
        self.url = reverse('pdf_to_docx')

    def pdf(self, name='report.pdf', content_type='application/pdf'):
        return SimpleUploadedFile(name, b'%PDF-1.4 test', content_type=content_type)

    @patch('conversion.views.get_client')
    def test_successful_conversion(self, get_client):
        get_client.return_value.convert_pdf_to_docx.return_value = ConversionResult(DOWNLOAD_URL, 'job-1')
        response = self.client.post(self.url, {'file': self.pdf()})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'success': True, 'downloadUrl': DOWNLOAD_URL, 'conversionId': 'job-1'})
        get_client.return_value.convert_pdf_to_docx.assert_called_once_with('report.pdf', b'%PDF-1.4 test')

    def test_file_is_required(self):
        response = self.client.post(self.url)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'No file uploaded')

    def test_only_pdf_accepted(self):
        response = self.client.post(self.url, {'file': self.pdf('notes.txt', 'text/plain')})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'The file must be a PDF')

    @patch('conversion.views.MAX_UPLOAD_BYTES', 4)
    def test_size_limit(self):
        response = self.client.post(self.url, {'file': self.pdf()})
        self.assertEqual(response.status_code, 400)

    @override_settings(CLOUDCONVERT_API_KEY='')
    def test_missing_api_key(self):
        response = self.client.post(self.url, {'file': self.pdf()})
        self.assertEqual(response.status_code, 500)
        self.assertIn('CLOUDCONVERT_API_KEY', response.json()['error'])

    @patch('conversion.views.get_client')
    def test_provider_error(self, get_client):
        get_client.return_value = MagicMock(**{
            'convert_pdf_to_docx.side_effect': ConversionError('The file is password protected'),
        })
        response = self.client.post(self.url, {'file': self.pdf()})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {'success': False, 'error': 'The file is password protected'})

    def test_get_not_allowed(self):
        self.assertEqual(self.client.get(self.url).status_code, 405)

    @patch('conversion.views.get_client')
    def test_rate_limited(self, get_client):
        get_client.return_value.convert_pdf_to_docx.return_value = ConversionResult(DOWNLOAD_URL, 'job-1')
        for _ in range(10):
            self.client.post(self.url, {'file': self.pdf()})
        response = self.client.post(self.url, {'file': self.pdf()})
        self.assertEqual(response.status_code, 429)
